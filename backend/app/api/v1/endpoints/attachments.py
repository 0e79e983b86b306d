"""Patient attachment endpoints for DentalDesk.

Upload (multipart field ``file``), list, download and delete files
attached to a patient record.
"""

from datetime import datetime
from typing import Annotated, NoReturn
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.auth import require_access
from app.core.logging import audit_logger, get_logger
from app.core.security import TokenData
from app.models.attachment import PatientAttachment, StorageMode
from app.models.base import get_db
from app.services.attachments import (
    AttachmentError,
    AttachmentNotFoundError,
    AttachmentStore,
    AttachmentTooLargeError,
    AttachmentValidationError,
    PatientNotFoundError,
    UploadRequest,
)

logger = get_logger(__name__)
router = APIRouter()

UPLOADS_URL_PREFIX = "/uploads"


class AttachmentResponse(BaseModel):
    """Attachment metadata."""

    id: int
    original_name: str
    mime_type: str
    size: int = Field(..., description="Size in bytes")
    uploaded_at: datetime
    storage_mode: str
    download_url: str
    url: str | None = Field(None, description="Static file URL (reference storage only)")


class AttachmentUploadResponse(BaseModel):
    """Result of an upload: the new attachment and the patient's collection."""

    message: str
    attachment: AttachmentResponse
    attachments: list[AttachmentResponse]


def get_attachment_store(request: Request) -> AttachmentStore:
    """Attachment store created at application startup."""
    return request.app.state.attachment_store


def attachment_to_response(
    attachment: PatientAttachment, store: AttachmentStore
) -> AttachmentResponse:
    served = store.served_filename(attachment)
    return AttachmentResponse(
        id=attachment.id,
        original_name=attachment.original_name,
        mime_type=attachment.mime_type,
        size=attachment.size,
        uploaded_at=attachment.uploaded_at,
        storage_mode=attachment.storage_mode.value,
        download_url=(
            f"/api/v1/patients/{attachment.patient_id}/attachments/{attachment.id}/download"
        ),
        url=f"{UPLOADS_URL_PREFIX}/{served}" if served else None,
    )


def _raise_http(exc: AttachmentError) -> NoReturn:
    """Translate attachment store errors into HTTP errors."""
    if isinstance(exc, (PatientNotFoundError, AttachmentNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, AttachmentTooLargeError):
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc
    if isinstance(exc, AttachmentValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Attachment storage failed"
    ) from exc


@router.post(
    "/{patient_id}/attachments",
    response_model=AttachmentUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    patient_id: int,
    current_user: Annotated[TokenData, Depends(require_access("attachments:upload"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
    file: UploadFile | None = File(None, description="File to attach (X-ray, report)"),
) -> AttachmentUploadResponse:
    """Upload a file and attach it to a patient."""
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    # Read at most one byte past the limit so oversize uploads are detected
    # without buffering the whole body.
    try:
        payload = await file.read(store.config.max_file_size + 1)
    finally:
        await file.close()

    upload = UploadRequest(
        patient_id=patient_id,
        original_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        size=len(payload),
        payload=payload,
    )
    try:
        attachment = await store.upload(db, upload)
        attachments = await store.list_for_patient(db, patient_id)
    except AttachmentError as e:
        _raise_http(e)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="attachment",
        resource_id=str(attachment.id),
        action="UPLOAD",
        details={"patient_id": patient_id, "size": attachment.size},
    )

    return AttachmentUploadResponse(
        message="Attachment uploaded",
        attachment=attachment_to_response(attachment, store),
        attachments=[attachment_to_response(a, store) for a in attachments],
    )


@router.get("/{patient_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    patient_id: int,
    current_user: Annotated[TokenData, Depends(require_access("attachments:list"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> list[AttachmentResponse]:
    """List a patient's attachments in upload order."""
    try:
        attachments = await store.list_for_patient(db, patient_id)
    except AttachmentError as e:
        _raise_http(e)

    return [attachment_to_response(a, store) for a in attachments]


@router.get("/{patient_id}/attachments/{attachment_id}/download")
async def download_attachment(
    patient_id: int,
    attachment_id: int,
    current_user: Annotated[TokenData, Depends(require_access("attachments:download"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> Response:
    """Download the bytes of one attachment."""
    try:
        attachment = await store.get(db, patient_id, attachment_id)
        if attachment.storage_mode is StorageMode.REFERENCE:
            path = store.path_for(attachment)
            if not path.is_file():
                logger.warning(
                    "Attachment file missing",
                    patient_id=patient_id,
                    attachment_id=attachment_id,
                )
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Attachment file not found",
                )
            response: Response = FileResponse(
                path, media_type=attachment.mime_type, filename=attachment.original_name
            )
        else:
            data = await store.read_inline(db, attachment)
            response = Response(
                content=data,
                media_type=attachment.mime_type,
                headers={
                    "Content-Disposition": (
                        f"attachment; filename*=utf-8''{quote(attachment.original_name)}"
                    )
                },
            )
    except AttachmentError as e:
        _raise_http(e)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="attachment",
        resource_id=str(attachment_id),
        action="DOWNLOAD",
        details={"patient_id": patient_id},
    )
    return response


@router.delete(
    "/{patient_id}/attachments/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_attachment(
    patient_id: int,
    attachment_id: int,
    current_user: Annotated[TokenData, Depends(require_access("attachments:delete"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> None:
    """Delete one attachment (admin, dentist)."""
    try:
        await store.delete(db, patient_id, attachment_id)
    except AttachmentError as e:
        _raise_http(e)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="attachment",
        resource_id=str(attachment_id),
        action="DELETE",
        details={"patient_id": patient_id},
    )
