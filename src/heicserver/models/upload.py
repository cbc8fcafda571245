"""Uploaded file records and the request shapes they arrive in."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from starlette.datastructures import FormData, UploadFile


@dataclass
class UploadedFile:
    """An uploaded file held in memory."""
    buffer: bytes = b""
    originalname: Optional[str] = None
    mimetype: Optional[str] = None
    size: Optional[int] = None
    fieldname: Optional[str] = None
    encoding: Optional[str] = None

    @classmethod
    async def from_upload(cls, fieldname: str, upload: UploadFile) -> "UploadedFile":
        """Read a multipart part fully into memory."""
        buffer = await upload.read()
        return cls(
            buffer=buffer,
            originalname=upload.filename or None,
            mimetype=upload.content_type or None,
            size=len(buffer),
            fieldname=fieldname,
            encoding=upload.headers.get("content-transfer-encoding") if upload.headers else None,
        )

    def describe(self) -> Dict[str, Any]:
        """Summary without the payload, for responses and logs."""
        return {
            "fieldname": self.fieldname,
            "originalname": self.originalname,
            "mimetype": self.mimetype,
            "size": self.size if self.size is not None else len(self.buffer or b""),
        }


@dataclass
class NoUpload:
    """The request carried no file field."""


@dataclass
class SingleUpload:
    """One field holding one file."""
    file: Optional[UploadedFile] = None


@dataclass
class ListUpload:
    """One field holding an ordered list of files."""
    files: List[UploadedFile] = field(default_factory=list)


@dataclass
class FieldsUpload:
    """Field name to file (or list of files), in upload order."""
    fields: Dict[str, Union[UploadedFile, List[UploadedFile]]] = field(default_factory=dict)


UploadShape = Union[NoUpload, SingleUpload, ListUpload, FieldsUpload]

UPLOAD_MODES = ("single", "array", "fields", "any")


class UploadLimitError(ValueError):
    """A field carried more files than it accepts."""

    def __init__(self, field_name: str, max_count: int):
        self.field_name = field_name
        self.max_count = max_count
        super().__init__(f"Too many files for field '{field_name}' (maximum {max_count})")


def _is_file(value: Any) -> bool:
    return isinstance(value, UploadFile)


async def _collect(form: FormData, field_name: str) -> List[UploadedFile]:
    return [
        await UploadedFile.from_upload(field_name, value)
        for value in form.getlist(field_name)
        if _is_file(value)
    ]


async def parse_upload(
    form: FormData,
    mode: str = "single",
    field_name: str = "file",
    fields: Optional[Dict[str, int]] = None,
    max_count: Optional[int] = None,
) -> UploadShape:
    """
    Build an upload shape from a parsed multipart form.

    Args:
        form: Parsed form data
        mode: ``single``, ``array``, ``fields`` or ``any``
        field_name: File field for ``single`` and ``array`` modes
        fields: Field name to max count for ``fields`` mode (1 keeps a single record)
        max_count: Maximum files accepted in ``array`` mode

    Returns:
        The matching upload shape, ``NoUpload`` when no file was sent
    """
    if mode not in UPLOAD_MODES:
        raise ValueError(f"Unknown upload mode: {mode}")

    if mode == "single":
        files = await _collect(form, field_name)
        if not files:
            return NoUpload()
        if len(files) > 1:
            raise UploadLimitError(field_name, 1)
        return SingleUpload(file=files[0])

    if mode == "array":
        files = await _collect(form, field_name)
        if not files:
            return NoUpload()
        if max_count is not None and len(files) > max_count:
            raise UploadLimitError(field_name, max_count)
        return ListUpload(files=files)

    if mode == "any":
        names = list(dict.fromkeys(key for key, value in form.multi_items() if _is_file(value)))
        files = []
        for name in names:
            files.extend(await _collect(form, name))
        if not files:
            return NoUpload()
        if max_count is not None and len(files) > max_count:
            raise UploadLimitError("*", max_count)
        return ListUpload(files=files)

    collected: Dict[str, Union[UploadedFile, List[UploadedFile]]] = {}
    for name, limit in (fields or {}).items():
        files = await _collect(form, name)
        if not files:
            continue
        if len(files) > limit:
            raise UploadLimitError(name, limit)
        collected[name] = files[0] if limit == 1 else files

    if not collected:
        return NoUpload()
    return FieldsUpload(fields=collected)


def iter_files(upload: UploadShape) -> List[UploadedFile]:
    """Flatten an upload shape into its files, in upload order."""
    if isinstance(upload, SingleUpload):
        return [upload.file] if upload.file else []
    if isinstance(upload, ListUpload):
        return list(upload.files)
    if isinstance(upload, FieldsUpload):
        files: List[UploadedFile] = []
        for value in upload.fields.values():
            if isinstance(value, list):
                files.extend(value)
            elif value is not None:
                files.append(value)
        return files
    return []
