"""
Patient database model.

Represents a clinic patient with contact details, and links to
attachments (X-rays, reports) and appointments.
"""

from datetime import date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.appointment import Appointment
    from app.models.attachment import PatientAttachment


class Patient(Base):
    """
    Patient model representing a dental clinic patient.

    Email is unique and always stored lower-cased; attachments and
    appointments are owned by the patient and deleted with it.
    """

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)

    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    attachments: Mapped[list["PatientAttachment"]] = relationship(
        "PatientAttachment",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="PatientAttachment.id",
        lazy="selectin",
    )
    appointments: Mapped[list["Appointment"]] = relationship(
        "Appointment",
        back_populates="patient",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_patients_name", "name"),)

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.name}')>"
