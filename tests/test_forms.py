"""
MultipartReader: field order, chunk streaming and malformed bodies.
"""
import pytest
from starlette.datastructures import Headers

from errors import MalformedSubmission
from form_builder import BOUNDARY, chunked, content_type, multipart_body, stream_of
from forms import MultipartReader


def _reader(body: bytes, chunk_size: int = 7, ctype: str = None) -> MultipartReader:
    headers = Headers({"content-type": ctype or content_type()})
    return MultipartReader(headers, stream_of(chunked(body, chunk_size)))


async def _collect(reader):
    fields = []
    async for field in reader.fields():
        fields.append((field.name, field.filename, await field.read()))
    return fields


class TestFields:
    @pytest.mark.anyio
    async def test_yields_fields_in_arrival_order(self):
        body = multipart_body([
            ("name", None, b"Anon"),
            ("file", "cat.png", b"\x89PNG-ish bytes"),
            ("subject", None, b"Hi"),
        ])

        assert await _collect(_reader(body)) == [
            ("name", None, b"Anon"),
            ("file", "cat.png", b"\x89PNG-ish bytes"),
            ("subject", None, b"Hi"),
        ]

    @pytest.mark.anyio
    @pytest.mark.parametrize("chunk_size", [1, 3, 64, 100_000])
    async def test_chunk_boundaries_do_not_matter(self, chunk_size):
        payload = bytes(range(256)) * 20
        body = multipart_body([("file", "clip.mp4", payload)])

        [(_, _, data)] = await _collect(_reader(body, chunk_size))
        assert data == payload

    @pytest.mark.anyio
    async def test_undrained_fields_are_skipped(self):
        body = multipart_body([
            ("csrf_token", None, b"x" * 500),
            ("body", None, b"hello"),
        ])

        seen = {}
        async for field in _reader(body).fields():
            if field.name == "body":
                seen[field.name] = await field.read()

        assert seen == {"body": b"hello"}

    @pytest.mark.anyio
    async def test_empty_filename_is_reported_as_empty(self):
        body = multipart_body([("file", "", b"")])

        assert await _collect(_reader(body)) == [("file", "", b"")]

    @pytest.mark.anyio
    async def test_content_type_of_part(self):
        body = multipart_body([("file", "clip.mp4", b"data")])

        async for field in _reader(body).fields():
            assert field.content_type == "application/octet-stream"
            await field.drain()


class TestMalformed:
    @pytest.mark.parametrize(
        "ctype",
        ["application/x-www-form-urlencoded", "text/plain", "multipart/form-data"],
    )
    def test_rejects_non_multipart_or_missing_boundary(self, ctype):
        with pytest.raises(MalformedSubmission):
            _reader(b"", ctype=ctype)

    @pytest.mark.anyio
    async def test_media_type_is_case_insensitive(self):
        body = multipart_body([("name", None, b"Anon")])
        ctype = f"Multipart/Form-Data; boundary={BOUNDARY}"

        assert await _collect(_reader(body, ctype=ctype)) == [("name", None, b"Anon")]

    @pytest.mark.anyio
    async def test_body_ending_inside_a_field(self):
        body = multipart_body([("body", None, b"a long comment " * 10)])
        truncated = body[: len(body) // 2]

        with pytest.raises(MalformedSubmission):
            await _collect(_reader(truncated))

    @pytest.mark.anyio
    async def test_part_without_name(self):
        body = (
            f"--{BOUNDARY}\r\n"
            "Content-Disposition: form-data\r\n"
            "\r\n"
            "orphan\r\n"
            f"--{BOUNDARY}--\r\n"
        ).encode()

        with pytest.raises(MalformedSubmission):
            await _collect(_reader(body))

    @pytest.mark.anyio
    async def test_wrong_boundary(self):
        body = multipart_body([("name", None, b"Anon")], boundary="somethingelse")

        with pytest.raises(MalformedSubmission):
            await _collect(_reader(body))
