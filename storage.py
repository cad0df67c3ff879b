import logging
import threading
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

import config
from database import make_engine, make_session_factory
from errors import StoreError
from models import Base, Post

logger = logging.getLogger(__name__)


class PostStore:
    """
    Owns the posts database.

    Every read and write goes through one lock, so inserts are totally
    ordered and a reader never sees a half-applied insert.
    """

    def __init__(self, database_url: str):
        self._engine = make_engine(database_url)
        self._session_factory = make_session_factory(self._engine)
        self._lock = threading.Lock()
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            logger.exception("Failed to initialize posts schema")
            raise StoreError("Failed to initialize database") from e

    def insert(self, post: Post) -> Post:
        if post.id is not None:
            raise ValueError("post ids are assigned by the store")

        with self._lock:
            db = self._session_factory()
            try:
                db.add(post)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception("Failed to save post")
                raise StoreError("Failed to save post") from e
            finally:
                db.close()
        return post

    def list_all(self) -> List[Post]:
        """All posts, newest first. Same-second posts fall back to id order."""
        with self._lock:
            db = self._session_factory()
            try:
                return (
                    db.query(Post)
                    .order_by(Post.timestamp.desc(), Post.id.desc())
                    .all()
                )
            except SQLAlchemyError as e:
                logger.exception("Failed to load posts")
                raise StoreError("Failed to load posts") from e
            finally:
                db.close()

    def close(self):
        self._engine.dispose()


_post_store: Optional[PostStore] = None
_post_store_lock = threading.Lock()


def get_post_store() -> PostStore:
    global _post_store
    with _post_store_lock:
        if _post_store is None:
            _post_store = PostStore(config.DATABASE_URL)
    return _post_store
