"""
Upload classification and storage.

Uploads are classified by the extension of the filename the client declared,
never by sniffing the bytes. Images are decoded after they are written so a
script renamed to ``.png`` does not survive; videos are trusted once the
extension passes the allow-list.
"""
import logging
import mimetypes
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterable, Optional, Union

from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

import config
from errors import InvalidImage, MediaWriteError, UnsupportedFormat, UnsupportedMediaType
from models import MediaType

logger = logging.getLogger(__name__)

IMAGE_SUBTYPES = frozenset({"jpeg", "jpg", "png", "gif", "webp"})
VIDEO_SUBTYPES = frozenset({"mp4"})

URL_PREFIX = "/uploads"
KIND_DIRS = {
    MediaType.IMAGE: "images",
    MediaType.VIDEO: "videos",
}

# Built-in table only, so the result does not depend on the host's mime.types
_mime_types = mimetypes.MimeTypes()
_mime_types.add_type("image/webp", ".webp")


@dataclass(frozen=True)
class MediaFormat:
    kind: MediaType
    subtype: str

    @property
    def extension(self) -> str:
        return self.subtype


def classify(filename: str) -> MediaFormat:
    mime_type, _ = _mime_types.guess_type(filename)
    if mime_type is None or "/" not in mime_type:
        raise UnsupportedMediaType("Unsupported media type")

    top_level, subtype = mime_type.split("/", 1)
    if top_level == "image":
        if subtype not in IMAGE_SUBTYPES:
            raise UnsupportedFormat("Unsupported image format")
        return MediaFormat(MediaType.IMAGE, subtype)
    if top_level == "video":
        if subtype not in VIDEO_SUBTYPES:
            raise UnsupportedFormat("Unsupported video format")
        return MediaFormat(MediaType.VIDEO, subtype)
    raise UnsupportedMediaType("Unsupported media type")


def is_valid_image(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        return False
    return True


class MediaStore:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        for dirname in KIND_DIRS.values():
            (self.root / dirname).mkdir(parents=True, exist_ok=True)

    def directory_for(self, kind: MediaType) -> Path:
        return self.root / KIND_DIRS[kind]

    def url_for(self, kind: MediaType, filename: str) -> str:
        return f"{URL_PREFIX}/{KIND_DIRS[kind]}/{filename}"

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map a URL produced by :meth:`store` back to its file, or None."""
        for kind, dirname in KIND_DIRS.items():
            prefix = f"{URL_PREFIX}/{dirname}/"
            if url.startswith(prefix):
                filename = url[len(prefix):]
                if not filename or "/" in filename or filename.startswith("."):
                    return None
                return self.directory_for(kind) / filename
        return None

    async def store(self, media_format: MediaFormat, chunks: AsyncIterable[bytes]) -> str:
        """
        Stream ``chunks`` into a freshly named file and return its URL.

        The name is ``<uuid4>.<subtype>``; the client filename never reaches
        the disk. The file is removed again if the copy or the image check
        fails or is interrupted.
        """
        filename = f"{uuid.uuid4()}.{media_format.extension}"
        path = self.directory_for(media_format.kind) / filename

        try:
            fh = await run_in_threadpool(path.open, "xb")
        except OSError as e:
            logger.exception("Could not create upload file %s", path)
            raise MediaWriteError("Failed to store uploaded file") from e

        try:
            with fh:
                async for chunk in chunks:
                    if chunk:
                        await run_in_threadpool(fh.write, chunk)
            if media_format.kind is MediaType.IMAGE:
                if not await run_in_threadpool(is_valid_image, path):
                    raise InvalidImage("Invalid image file")
        except OSError as e:
            self._remove(path)
            logger.exception("Could not write upload file %s", path)
            raise MediaWriteError("Failed to store uploaded file") from e
        except BaseException:
            self._remove(path)
            raise

        logger.debug("Stored upload %s", path)
        return self.url_for(media_format.kind, filename)

    def discard(self, url: str):
        path = self.path_for_url(url)
        if path is not None:
            self._remove(path)

    def _remove(self, path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError:
            logger.exception("Could not remove upload %s", path)
            return
        logger.info("Removed upload %s", path)


_media_store: Optional[MediaStore] = None
_media_store_lock = threading.Lock()


def get_media_store() -> MediaStore:
    global _media_store
    with _media_store_lock:
        if _media_store is None:
            _media_store = MediaStore(config.UPLOAD_ROOT)
    return _media_store
