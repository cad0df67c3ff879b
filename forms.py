"""
Incremental multipart/form-data decoding.

Starlette's ``request.form()`` spools every file to a temporary file before
returning. Here the body is fed through ``python_multipart`` as it arrives and
each field is handed out as a lazy stream of chunks, so the caller can reject
a field, or write it to its final place, while the rest of the body is still
on the wire.
"""
from collections import deque
from typing import AsyncIterator, Deque, List, Optional, Tuple

from python_multipart import MultipartParser
from python_multipart.exceptions import FormParserError
from python_multipart.multipart import parse_options_header
from starlette.datastructures import Headers

from errors import MalformedSubmission

_PART_BEGIN = "begin"
_PART_DATA = "data"
_PART_END = "end"


def _decode_header(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class FormField:
    def __init__(self, reader: "MultipartReader", headers: List[Tuple[bytes, bytes]]):
        self._reader = reader
        self._done = False
        self.headers = Headers(raw=headers)

        disposition = self.headers.get("content-disposition")
        if disposition is None:
            raise MalformedSubmission("Form part is missing its Content-Disposition header")
        _, options = parse_options_header(disposition)
        if b"name" not in options:
            raise MalformedSubmission("Form part has no field name")

        self.name = _decode_header(options[b"name"])
        self.filename: Optional[str] = None
        if b"filename" in options:
            self.filename = _decode_header(options[b"filename"])
        self.content_type = self.headers.get("content-type")

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the payload of this field. Can only be consumed once."""
        while not self._done:
            event = await self._reader._next_event()
            if event is None:
                raise MalformedSubmission("Form data ended in the middle of a field")
            kind, payload = event
            if kind == _PART_END:
                self._done = True
                return
            if kind == _PART_DATA:
                yield payload

    async def read(self) -> bytes:
        buf = bytearray()
        async for chunk in self.chunks():
            buf.extend(chunk)
        return bytes(buf)

    async def drain(self):
        async for _ in self.chunks():
            pass

    def __repr__(self):
        return f"<FormField name={self.name!r} filename={self.filename!r}>"


class MultipartReader:
    def __init__(self, headers: Headers, stream: AsyncIterator[bytes]):
        content_type, params = parse_options_header(headers.get("content-type"))
        if content_type.lower() != b"multipart/form-data":
            raise MalformedSubmission("Expected a multipart/form-data submission")
        boundary = params.get(b"boundary")
        if not boundary:
            raise MalformedSubmission("Missing boundary in multipart submission")

        self._stream = stream.__aiter__()
        self._exhausted = False
        self._events: Deque[Tuple[str, object]] = deque()
        self._part_headers: List[Tuple[bytes, bytes]] = []
        self._header_name = b""
        self._header_value = b""

        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
        }
        self._parser = MultipartParser(boundary, callbacks)

    @classmethod
    def from_request(cls, request) -> "MultipartReader":
        return cls(request.headers, request.stream())

    def _on_part_begin(self):
        self._part_headers = []

    def _on_part_data(self, data: bytes, start: int, end: int):
        self._events.append((_PART_DATA, bytes(data[start:end])))

    def _on_part_end(self):
        self._events.append((_PART_END, None))

    def _on_header_field(self, data: bytes, start: int, end: int):
        self._header_name += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int):
        self._header_value += data[start:end]

    def _on_header_end(self):
        self._part_headers.append((self._header_name.lower(), self._header_value))
        self._header_name = b""
        self._header_value = b""

    def _on_headers_finished(self):
        self._events.append((_PART_BEGIN, self._part_headers))

    async def _next_event(self):
        while not self._events:
            if self._exhausted:
                return None
            try:
                chunk = await self._stream.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                self._feed_end()
                continue
            self._feed(chunk)
        return self._events.popleft()

    def _feed(self, chunk: bytes):
        try:
            self._parser.write(chunk)
        except FormParserError as e:
            raise MalformedSubmission("Malformed multipart submission") from e

    def _feed_end(self):
        try:
            self._parser.finalize()
        except FormParserError as e:
            raise MalformedSubmission("Malformed multipart submission") from e

    async def fields(self) -> AsyncIterator[FormField]:
        """Yield fields in arrival order, draining each before the next."""
        while True:
            event = await self._next_event()
            if event is None:
                return
            kind, payload = event
            if kind != _PART_BEGIN:
                continue
            field = FormField(self, payload)
            yield field
            await field.drain()
