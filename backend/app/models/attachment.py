"""
Patient attachment database model.

An attachment is a file (X-ray, scan, report) owned by exactly one patient.
Depending on the deployment's storage mode the row either references a file
under the attachment storage directory or carries the bytes itself.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, utcnow

if TYPE_CHECKING:
    from app.models.patient import Patient


class StorageMode(str, PyEnum):
    """Where attachment bytes live."""

    REFERENCE = "reference"
    INLINE = "inline"


class PatientAttachment(Base):
    """Attachment metadata plus either a stored file name or inline bytes."""

    __tablename__ = "patient_attachments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True
    )

    original_name: Mapped[str] = mapped_column(String(512), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    storage_mode: Mapped[StorageMode] = mapped_column(Enum(StorageMode), nullable=False)

    # Reference mode: file name relative to the attachment storage directory
    filename: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, unique=True)

    # Inline mode: the payload itself. Deferred so listings stay light.
    data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True, deferred=True)

    patient: Mapped["Patient"] = relationship("Patient", back_populates="attachments")

    def __repr__(self) -> str:
        return (
            f"<PatientAttachment(id={self.id}, patient_id={self.patient_id}, "
            f"original_name='{self.original_name}', mode='{self.storage_mode.value}')>"
        )
