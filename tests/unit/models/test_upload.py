"""Tests for upload records and shape parsing."""

import io

import pytest
from starlette.datastructures import FormData, Headers, UploadFile

from src.heicserver.models.upload import (
    FieldsUpload,
    ListUpload,
    NoUpload,
    SingleUpload,
    UploadedFile,
    UploadLimitError,
    iter_files,
    parse_upload,
)


def _part(data=b"data", filename="photo.heic", content_type="image/heic"):
    return UploadFile(
        file=io.BytesIO(data),
        size=len(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestUploadedFile:
    """Test cases for UploadedFile."""

    @pytest.mark.asyncio
    async def test_from_upload(self):
        record = await UploadedFile.from_upload("file", _part(b"12345", "IMG_1.HEIC"))

        assert record.buffer == b"12345"
        assert record.size == 5
        assert record.originalname == "IMG_1.HEIC"
        assert record.mimetype == "image/heic"
        assert record.fieldname == "file"

    def test_describe_omits_buffer(self):
        record = UploadedFile(buffer=b"abc", originalname="a.jpg", mimetype="image/jpeg", fieldname="file")

        assert record.describe() == {
            "fieldname": "file",
            "originalname": "a.jpg",
            "mimetype": "image/jpeg",
            "size": 3,
        }


class TestParseUpload:
    """Test cases for parse_upload."""

    @pytest.mark.asyncio
    async def test_no_files(self):
        form = FormData([("note", "hello")])

        assert isinstance(await parse_upload(form), NoUpload)
        assert isinstance(await parse_upload(form, mode="array"), NoUpload)
        assert isinstance(await parse_upload(form, mode="fields", fields={"front": 1}), NoUpload)

    @pytest.mark.asyncio
    async def test_single(self):
        form = FormData([("file", _part()), ("caption", "text")])

        upload = await parse_upload(form, mode="single", field_name="file")

        assert isinstance(upload, SingleUpload)
        assert upload.file.originalname == "photo.heic"

    @pytest.mark.asyncio
    async def test_single_rejects_multiple(self):
        form = FormData([("file", _part()), ("file", _part())])

        with pytest.raises(UploadLimitError) as exc_info:
            await parse_upload(form, mode="single")

        assert exc_info.value.field_name == "file"
        assert exc_info.value.max_count == 1

    @pytest.mark.asyncio
    async def test_array_preserves_order(self):
        form = FormData([
            ("files", _part(b"1", "a.jpg", "image/jpeg")),
            ("files", _part(b"2", "b.heic")),
            ("files", _part(b"3", "c.png", "image/png")),
        ])

        upload = await parse_upload(form, mode="array", field_name="files")

        assert isinstance(upload, ListUpload)
        assert [f.originalname for f in upload.files] == ["a.jpg", "b.heic", "c.png"]

    @pytest.mark.asyncio
    async def test_array_max_count(self):
        form = FormData([("files", _part()), ("files", _part()), ("files", _part())])

        with pytest.raises(UploadLimitError):
            await parse_upload(form, mode="array", field_name="files", max_count=2)

    @pytest.mark.asyncio
    async def test_fields(self):
        form = FormData([
            ("front", _part(b"f", "front.heic")),
            ("back", _part(b"b", "back.jpg", "image/jpeg")),
            ("extra", _part(b"x", "extra.heic")),
        ])

        upload = await parse_upload(form, mode="fields", fields={"front": 1, "back": 1, "pages": 3})

        assert isinstance(upload, FieldsUpload)
        assert set(upload.fields) == {"front", "back"}
        assert isinstance(upload.fields["front"], UploadedFile)

    @pytest.mark.asyncio
    async def test_fields_multi_count_keeps_list(self):
        form = FormData([("pages", _part(b"1")), ("pages", _part(b"2"))])

        upload = await parse_upload(form, mode="fields", fields={"pages": 3})

        assert [f.buffer for f in upload.fields["pages"]] == [b"1", b"2"]

    @pytest.mark.asyncio
    async def test_any(self):
        form = FormData([("a", _part(b"1")), ("b", _part(b"2")), ("a", _part(b"3"))])

        upload = await parse_upload(form, mode="any")

        assert isinstance(upload, ListUpload)
        assert len(upload.files) == 3

    @pytest.mark.asyncio
    async def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown upload mode"):
            await parse_upload(FormData(), mode="stream")


class TestIterFiles:
    """Test cases for iter_files."""

    def test_shapes(self):
        a, b, c = UploadedFile(b"a"), UploadedFile(b"b"), UploadedFile(b"c")

        assert iter_files(NoUpload()) == []
        assert iter_files(SingleUpload(a)) == [a]
        assert iter_files(ListUpload([a, b])) == [a, b]
        assert iter_files(FieldsUpload({"x": a, "y": [b, c]})) == [a, b, c]
