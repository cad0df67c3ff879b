import enum

from sqlalchemy import CheckConstraint, Column, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MediaType(str, enum.Enum):
    IMAGE = "Image"
    VIDEO = "Video"


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint(
            "(media_url IS NULL) = (media_type IS NULL)",
            name="ck_posts_media_pair",
        ),
        CheckConstraint(
            "media_type IN ('Image', 'Video')",
            name="ck_posts_media_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    timestamp = Column(Integer, nullable=False, index=True)  # unix seconds
    media_url = Column(String, nullable=True)
    media_type = Column(String, nullable=True)

    @property
    def media_kind(self):
        if self.media_type is None:
            return None
        return MediaType(self.media_type)

    def __repr__(self):
        return f"<Post id={self.id} subject={self.subject!r}>"
