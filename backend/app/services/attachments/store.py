"""Patient attachment store for DentalDesk.

Persists uploaded files (X-rays, scans, reports) against a patient record,
lists them and deletes them. The storage strategy is fixed per deployment by
``AttachmentStoreConfig.storage_mode``:

    reference   bytes written to storage_dir/{epoch_ms}-{field}{ext},
                the row keeps only the file name
    inline      bytes persisted in the attachment row

Rows remember the mode they were written with, so a row is always resolved
the way it was stored.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import AttachmentSettings
from app.core.logging import get_logger
from app.models.attachment import PatientAttachment, StorageMode
from app.models.base import utcnow
from app.models.patient import Patient

logger = get_logger(__name__)

MAX_EXTENSION_LENGTH = 16


class AttachmentError(Exception):
    """Base class for attachment store errors."""


class PatientNotFoundError(AttachmentError):
    """Raised when the owning patient does not exist."""

    def __init__(self, patient_id: int):
        self.patient_id = patient_id
        super().__init__(f"Patient not found: {patient_id}")


class AttachmentNotFoundError(AttachmentError):
    """Raised when an attachment id does not resolve within a patient."""

    def __init__(self, patient_id: int, attachment_id: int):
        self.patient_id = patient_id
        self.attachment_id = attachment_id
        super().__init__(f"Attachment not found: {attachment_id}")


class AttachmentValidationError(AttachmentError):
    """Raised when an upload is rejected before anything is stored."""


class AttachmentTooLargeError(AttachmentValidationError):
    """Raised when an upload exceeds the configured maximum size."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"File exceeds maximum size of {max_size} bytes")


class AttachmentStorageError(AttachmentError):
    """Raised when bytes or metadata could not be persisted."""


@dataclass(frozen=True)
class AttachmentStoreConfig:
    """Explicit configuration handed to the store at construction."""

    storage_mode: StorageMode
    max_file_size: int
    storage_dir: Path
    field_name: str = "file"
    serve_static: bool = False

    @classmethod
    def from_settings(cls, settings: AttachmentSettings) -> "AttachmentStoreConfig":
        return cls(
            storage_mode=StorageMode(settings.storage_mode),
            max_file_size=settings.max_file_size_bytes,
            storage_dir=Path(settings.storage_dir),
            field_name=settings.field_name,
            serve_static=settings.serve_static,
        )


@dataclass(frozen=True)
class UploadRequest:
    """A single uploaded file destined for one patient."""

    patient_id: int
    original_name: str
    mime_type: str
    size: int
    payload: bytes


def _safe_extension(original_name: str) -> str:
    """Extension of the original name, lower-cased, or empty if unusable."""
    suffix = Path(original_name).suffix.lower()
    if len(suffix) > MAX_EXTENSION_LENGTH or not suffix[1:].isalnum():
        return ""
    return suffix


class AttachmentStore:
    """Attachment lifecycle against a patient record."""

    def __init__(self, config: AttachmentStoreConfig):
        self.config = config
        self.storage_dir = Path(config.storage_dir)
        self._ready = False

    async def initialize(self) -> None:
        """Create the storage directory (reference mode only)."""
        if self.config.storage_mode is StorageMode.REFERENCE:
            try:
                await aiofiles.os.makedirs(self.storage_dir, exist_ok=True)
            except OSError as e:
                logger.error("Failed to initialize attachment storage", error=str(e))
                raise
        self._ready = True
        logger.info(
            "Attachment storage initialized",
            mode=self.config.storage_mode.value,
            path=str(self.storage_dir),
            max_file_size=self.config.max_file_size,
        )

    def is_ready(self) -> bool:
        """Check if the store is ready."""
        return self._ready

    def path_for(self, attachment: PatientAttachment) -> Path:
        """Absolute path of a reference-mode attachment's bytes."""
        if attachment.storage_mode is not StorageMode.REFERENCE or not attachment.filename:
            raise AttachmentStorageError(f"Attachment {attachment.id} has no stored file")
        return self.storage_dir / attachment.filename

    def served_filename(self, attachment: PatientAttachment) -> str | None:
        """Stored file name when the storage directory is served statically."""
        if not self.config.serve_static or attachment.storage_mode is not StorageMode.REFERENCE:
            return None
        return attachment.filename

    async def _get_patient(self, db: AsyncSession, patient_id: int) -> Patient:
        patient = await db.get(Patient, patient_id)
        if patient is None:
            raise PatientNotFoundError(patient_id)
        return patient

    def _validate(self, request: UploadRequest) -> None:
        if not request.payload or request.size <= 0:
            raise AttachmentValidationError("No file uploaded")
        if request.size > self.config.max_file_size:
            raise AttachmentTooLargeError(request.size, self.config.max_file_size)
        if request.size != len(request.payload):
            raise AttachmentValidationError("Declared size does not match payload")

    async def _write_file(self, request: UploadRequest) -> str:
        """Write bytes under a fresh ``{epoch_ms}-{field}{ext}`` name."""
        extension = _safe_extension(request.original_name)
        stamp = int(time.time() * 1000)
        while True:
            filename = f"{stamp}-{self.config.field_name}{extension}"
            try:
                async with aiofiles.open(self.storage_dir / filename, "xb") as f:
                    await f.write(request.payload)
                return filename
            except FileExistsError:
                stamp += 1
            except OSError as e:
                logger.error("Failed to write attachment", filename=filename, error=str(e))
                raise AttachmentStorageError("Failed to store attachment") from e

    async def _remove_file(self, filename: str) -> bool:
        """Best-effort removal of a stored file; failures are only logged."""
        path = self.storage_dir / filename
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning("Attachment file already missing", path=str(path))
            return False
        except OSError as e:
            logger.warning("Failed to remove attachment file", path=str(path), error=str(e))
            return False
        logger.info("Removed attachment file", path=str(path))
        return True

    async def upload(self, db: AsyncSession, request: UploadRequest) -> PatientAttachment:
        """Store an upload and append it to the patient's attachments.

        Raises:
            PatientNotFoundError: the patient does not exist (nothing stored)
            AttachmentValidationError: empty or oversized payload
            AttachmentStorageError: file write or commit failed
        """
        patient = await self._get_patient(db, request.patient_id)
        self._validate(request)

        mode = self.config.storage_mode
        attachment = PatientAttachment(
            original_name=request.original_name,
            mime_type=request.mime_type,
            size=request.size,
            uploaded_at=utcnow(),
            storage_mode=mode,
            filename=None,
            data=None,
        )
        if mode is StorageMode.REFERENCE:
            attachment.filename = await self._write_file(request)
        else:
            attachment.data = request.payload

        patient.attachments.append(attachment)
        patient.updated_at = utcnow()
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Failed to persist attachment",
                patient_id=request.patient_id,
                error=str(e),
            )
            if attachment.filename:
                await self._remove_file(attachment.filename)
            raise AttachmentStorageError("Failed to persist attachment") from e

        logger.info(
            "Stored attachment",
            patient_id=patient.id,
            attachment_id=attachment.id,
            mode=mode.value,
            size=attachment.size,
        )
        return attachment

    async def list_for_patient(
        self, db: AsyncSession, patient_id: int
    ) -> list[PatientAttachment]:
        """Attachments of a patient in upload order."""
        patient = await self._get_patient(db, patient_id)
        return list(patient.attachments)

    @staticmethod
    def _find(patient: Patient, attachment_id: int) -> PatientAttachment:
        for attachment in patient.attachments:
            if attachment.id == attachment_id:
                return attachment
        raise AttachmentNotFoundError(patient.id, attachment_id)

    async def get(
        self, db: AsyncSession, patient_id: int, attachment_id: int
    ) -> PatientAttachment:
        """Resolve one attachment within its patient."""
        patient = await self._get_patient(db, patient_id)
        return self._find(patient, attachment_id)

    async def read_inline(self, db: AsyncSession, attachment: PatientAttachment) -> bytes:
        """Load the deferred payload of an inline attachment."""
        if attachment.storage_mode is not StorageMode.INLINE:
            raise AttachmentStorageError(f"Attachment {attachment.id} is not stored inline")
        await db.refresh(attachment, attribute_names=["data"])
        return attachment.data or b""

    async def delete(self, db: AsyncSession, patient_id: int, attachment_id: int) -> None:
        """Remove an attachment; its stored file is removed best-effort afterwards."""
        patient = await self._get_patient(db, patient_id)
        attachment = self._find(patient, attachment_id)
        filename = attachment.filename if attachment.storage_mode is StorageMode.REFERENCE else None

        patient.attachments.remove(attachment)
        patient.updated_at = utcnow()
        await db.delete(attachment)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Failed to delete attachment",
                patient_id=patient_id,
                attachment_id=attachment_id,
                error=str(e),
            )
            raise AttachmentStorageError("Failed to delete attachment") from e

        if filename:
            await self._remove_file(filename)

    async def discard_files(self, attachments: Iterable[PatientAttachment]) -> int:
        """Best-effort removal of the stored files of already-deleted rows.

        Returns:
            Number of files removed
        """
        removed = 0
        for attachment in attachments:
            if attachment.storage_mode is StorageMode.REFERENCE and attachment.filename:
                if await self._remove_file(attachment.filename):
                    removed += 1
        return removed
