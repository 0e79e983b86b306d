"""Patient management endpoints for DentalDesk."""

from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.attachments import (
    AttachmentResponse,
    attachment_to_response,
    get_attachment_store,
)
from app.api.v1.endpoints.auth import require_access
from app.core.logging import audit_logger, get_logger
from app.core.security import TokenData
from app.models.base import get_db
from app.models.patient import Patient
from app.services.attachments import AttachmentStore

logger = get_logger(__name__)
router = APIRouter()

REQUIRED_FIELDS = ("name", "email", "phone")


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class PatientCreate(BaseModel):
    """Patient creation request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=256)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=32)
    date_of_birth: date | None = None
    address: str | None = Field(None, max_length=512)
    notes: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)


class PatientUpdate(BaseModel):
    """Partial patient update; only fields present in the body are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=256)
    email: EmailStr | None = None
    phone: str | None = Field(None, min_length=1, max_length=32)
    date_of_birth: date | None = None
    address: str | None = Field(None, max_length=512)
    notes: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "PatientUpdate":
        for field in REQUIRED_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class PatientResponse(BaseModel):
    """Patient record with attachment metadata."""

    id: int
    name: str
    email: str
    phone: str
    date_of_birth: date | None
    address: str | None
    notes: str | None
    attachments: list[AttachmentResponse]
    created_at: datetime
    updated_at: datetime


def _patient_to_response(patient: Patient, store: AttachmentStore) -> PatientResponse:
    return PatientResponse(
        id=patient.id,
        name=patient.name,
        email=patient.email,
        phone=patient.phone,
        date_of_birth=patient.date_of_birth,
        address=patient.address,
        notes=patient.notes,
        attachments=[attachment_to_response(a, store) for a in patient.attachments],
        created_at=patient.created_at,
        updated_at=patient.updated_at,
    )


async def _get_patient_or_404(db: AsyncSession, patient_id: int) -> Patient:
    patient = await db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Patient not found: {patient_id}",
        )
    return patient


async def _ensure_email_available(
    db: AsyncSession, email: str, exclude_id: int | None = None
) -> None:
    query = select(func.count()).select_from(Patient).where(Patient.email == email)
    if exclude_id is not None:
        query = query.where(Patient.id != exclude_id)
    if (await db.execute(query)).scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )


async def _commit_or_400(db: AsyncSession) -> None:
    """Commit; a unique-email race surfaces as IntegrityError."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Patient write rejected by constraint", error=str(e.orig))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        ) from e


@router.get("", response_model=list[PatientResponse])
async def list_patients(
    current_user: Annotated[TokenData, Depends(require_access("patients:list"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> list[PatientResponse]:
    """List all patients ordered by name.

    Search and pagination are performed by the dashboard.
    """
    result = await db.execute(select(Patient).order_by(Patient.name.asc(), Patient.id.asc()))
    return [_patient_to_response(p, store) for p in result.scalars().all()]


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreate,
    current_user: Annotated[TokenData, Depends(require_access("patients:create"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> PatientResponse:
    """Create a patient (admin, receptionist)."""
    await _ensure_email_available(db, payload.email)

    patient = Patient(**payload.model_dump(), attachments=[])
    db.add(patient)
    await _commit_or_400(db)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="patient",
        resource_id=str(patient.id),
        action="CREATE",
    )

    return _patient_to_response(patient, store)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: int,
    current_user: Annotated[TokenData, Depends(require_access("patients:read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> PatientResponse:
    """Get patient information."""
    patient = await _get_patient_or_404(db, patient_id)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="patient",
        resource_id=str(patient_id),
        action="VIEW",
    )

    return _patient_to_response(patient, store)


@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    current_user: Annotated[TokenData, Depends(require_access("patients:update"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> PatientResponse:
    """Update the fields present in the request body (admin, receptionist)."""
    patient = await _get_patient_or_404(db, patient_id)

    changes = payload.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] != patient.email:
        await _ensure_email_available(db, changes["email"], exclude_id=patient.id)

    for field, value in changes.items():
        setattr(patient, field, value)
    await _commit_or_400(db)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="patient",
        resource_id=str(patient_id),
        action="UPDATE",
        details={"fields": sorted(changes)},
    )

    return _patient_to_response(patient, store)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: int,
    current_user: Annotated[TokenData, Depends(require_access("patients:delete"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[AttachmentStore, Depends(get_attachment_store)],
) -> None:
    """Delete a patient with their attachments and appointments (admin only).

    Stored attachment files are removed best-effort after the commit.
    """
    patient = await _get_patient_or_404(db, patient_id)
    attachments = list(patient.attachments)

    await db.delete(patient)
    await db.commit()

    removed = await store.discard_files(attachments)

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="patient",
        resource_id=str(patient_id),
        action="DELETE",
        details={"attachments": len(attachments), "files_removed": removed},
    )
