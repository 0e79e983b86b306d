"""Patient attachment storage services for DentalDesk."""

from app.services.attachments.store import (
    AttachmentError,
    AttachmentNotFoundError,
    AttachmentStorageError,
    AttachmentStore,
    AttachmentStoreConfig,
    AttachmentTooLargeError,
    AttachmentValidationError,
    PatientNotFoundError,
    UploadRequest,
)

__all__ = [
    "AttachmentError",
    "AttachmentNotFoundError",
    "AttachmentStorageError",
    "AttachmentStore",
    "AttachmentStoreConfig",
    "AttachmentTooLargeError",
    "AttachmentValidationError",
    "PatientNotFoundError",
    "UploadRequest",
]
