import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from starlette.concurrency import run_in_threadpool

from errors import EmptyField, FieldTooLarge, ValidationError
from forms import FormField
from media import MediaStore, classify
from models import MediaType, Post
from storage import PostStore

TEXT_FIELDS = ("name", "subject", "body")
FILE_FIELD = "file"


@dataclass
class Submission:
    text: Dict[str, str] = field(default_factory=lambda: {name: "" for name in TEXT_FIELDS})
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = None

    def to_post(self, now: Optional[int] = None) -> Post:
        name = self.text["name"].strip()
        subject = self.text["subject"].strip()
        body = self.text["body"].strip()
        if not name or not subject or not body:
            raise EmptyField("Name, Subject, and Comment cannot be empty")

        return Post(
            name=name,
            subject=subject,
            body=body,
            timestamp=int(time.time()) if now is None else now,
            media_url=self.media_url,
            media_type=self.media_type.value if self.media_type else None,
        )


async def _read_text(form_field: FormField, limit: int) -> str:
    buf = bytearray()
    async for chunk in form_field.chunks():
        buf.extend(chunk)
        if len(buf) > limit:
            raise FieldTooLarge(f"The {form_field.name} field is longer than {limit} bytes")
    # decode once so a multi-byte character split across chunks survives
    return buf.decode("utf-8", errors="replace")


async def read_submission(
    fields: AsyncIterator[FormField],
    media_store: MediaStore,
    submission: Submission,
    max_field_bytes: int,
):
    """
    Consume the form fields in order, filling ``submission``.

    Text fields are accumulated, the attachment goes straight to the media
    store. The first rejected field aborts the whole submission.
    """
    async for form_field in fields:
        if form_field.name in TEXT_FIELDS:
            submission.text[form_field.name] += await _read_text(form_field, max_field_bytes)
            continue

        if form_field.name != FILE_FIELD:
            continue

        # a file input left empty still sends a part, just without a name
        if form_field.filename is None or not form_field.filename.strip():
            continue
        if submission.media_url is not None:
            raise ValidationError("Only one file can be attached")

        media_format = classify(form_field.filename)
        submission.media_url = await media_store.store(media_format, form_field.chunks())
        submission.media_type = media_format.kind


async def submit_post(
    fields: AsyncIterator[FormField],
    media_store: MediaStore,
    post_store: PostStore,
    max_field_bytes: int,
) -> Post:
    submission = Submission()
    try:
        await read_submission(fields, media_store, submission, max_field_bytes)
        post = submission.to_post()
        return await run_in_threadpool(post_store.insert, post)
    except BaseException:
        if submission.media_url is not None:
            media_store.discard(submission.media_url)
        raise
