"""
Media upload and management endpoints.

These endpoints are the host-side upload pipeline: they take a multipart
upload, hand it to the storage adapter and return the public URL. Reading
objects back goes through the serve route mounted by the application
factory, not through this router.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from ...core.models import UploadRequest
from ..dependencies import SettingsDep, StorageAdapterDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after storing an upload."""
    url: str = Field(description="Public URL of the stored original")


class ExistsResponse(BaseModel):
    exists: bool


class DeleteResponse(BaseModel):
    deleted: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a media file",
    description="Store a file in the bucket. Images also get resized WebP variants.",
)
async def upload_media(
    file: Annotated[UploadFile, File(description="File to store")],
    adapter: StorageAdapterDep,
    settings: SettingsDep,
    target_dir: Annotated[Optional[str], Form(description="Directory to store the file in")] = None,
) -> UploadResponse:
    """
    Store an uploaded file and return its public URL.

    Variants are generated in the background of the same request; their
    failure never fails the upload.
    """
    data = await file.read()

    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB"
        )

    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty"
        )

    upload = UploadRequest(
        name=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )

    logger.info(
        "Upload started",
        extra={
            "upload_filename": upload.name,
            "content_type": upload.content_type,
            "size_bytes": len(data),
        }
    )

    url = await adapter.save(upload, target_dir=target_dir or None)
    return UploadResponse(url=url)


@router.get(
    "/exists",
    response_model=ExistsResponse,
    summary="Check whether a file exists",
)
async def media_exists(
    adapter: StorageAdapterDep,
    file_name: Annotated[str, Query(min_length=1)],
    target_dir: Annotated[Optional[str], Query()] = None,
) -> ExistsResponse:
    return ExistsResponse(exists=await adapter.exists(file_name, target_dir=target_dir))


@router.delete(
    "",
    response_model=DeleteResponse,
    summary="Delete a file",
    description="Best-effort delete. Reports false instead of failing when the store errors.",
)
async def delete_media(
    adapter: StorageAdapterDep,
    file_name: Annotated[str, Query(min_length=1)],
    target_dir: Annotated[Optional[str], Query()] = None,
) -> DeleteResponse:
    return DeleteResponse(deleted=await adapter.delete(file_name, target_dir=target_dir))
