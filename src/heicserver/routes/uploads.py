"""Upload endpoints with HEIC files converted before the handler runs."""

import logging

from fastapi import APIRouter, Depends

from ..config import get_config
from ..middleware.heic import heic_upload
from ..models.schemas import ErrorResponse, UploadedFileInfo, UploadResponse
from ..models.upload import FieldsUpload, UploadShape, iter_files

logger = logging.getLogger(__name__)
config = get_config()

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

LICENSE_PHOTO_FIELDS = {"front": 1, "back": 1}

_error_responses = {
    400: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _describe(upload: UploadShape) -> UploadResponse:
    files = [UploadedFileInfo(**f.describe()) for f in iter_files(upload)]

    fields = None
    if isinstance(upload, FieldsUpload):
        fields = {
            name: [
                UploadedFileInfo(**f.describe())
                for f in (value if isinstance(value, list) else [value])
            ]
            for name, value in upload.fields.items()
        }

    logger.info(f"Received {len(files)} file(s): {', '.join(f.originalname or 'unnamed' for f in files)}")
    return UploadResponse(success=True, files=files, fields=fields)


@router.post("/photo", response_model=UploadResponse, responses=_error_responses)
async def upload_photo(upload: UploadShape = Depends(heic_upload(mode="single", field_name="file"))):
    """Accept a single photo in the ``file`` field."""
    return _describe(upload)


@router.post("/photos", response_model=UploadResponse, responses=_error_responses)
async def upload_photos(
    upload: UploadShape = Depends(
        heic_upload(mode="array", field_name="files", max_count=config.max_upload_files)
    ),
):
    """Accept several photos in the ``files`` field, order preserved."""
    return _describe(upload)


@router.post("/license", response_model=UploadResponse, responses=_error_responses)
async def upload_license_photos(
    upload: UploadShape = Depends(heic_upload(mode="fields", fields=LICENSE_PHOTO_FIELDS)),
):
    """Accept driver license photos in the ``front`` and ``back`` fields."""
    return _describe(upload)
