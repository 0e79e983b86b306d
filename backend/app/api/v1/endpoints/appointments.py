"""Appointment endpoints for DentalDesk.

Scheduling CRUD for patient visits. Any staff member can read the
schedule; deleting an appointment is restricted to admins and dentists.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.auth import require_access
from app.core.logging import audit_logger
from app.core.security import TokenData
from app.models.appointment import Appointment, AppointmentStatus
from app.models.base import get_db
from app.models.patient import Patient

router = APIRouter()


class AppointmentCreate(BaseModel):
    """Appointment creation request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: int
    scheduled_at: datetime
    duration_minutes: int = Field(30, ge=5, le=480)
    dentist: str | None = Field(None, max_length=256)
    reason: str | None = Field(None, max_length=512)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: str | None = None


class AppointmentUpdate(BaseModel):
    """Partial appointment update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: int | None = None
    scheduled_at: datetime | None = None
    duration_minutes: int | None = Field(None, ge=5, le=480)
    dentist: str | None = Field(None, max_length=256)
    reason: str | None = Field(None, max_length=512)
    status: AppointmentStatus | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "AppointmentUpdate":
        for field in ("patient_id", "scheduled_at", "duration_minutes", "status"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class AppointmentResponse(BaseModel):
    """Appointment with the patient's name for schedule views."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    patient_name: str | None = None
    scheduled_at: datetime
    duration_minutes: int
    dentist: str | None
    reason: str | None
    status: AppointmentStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime


def _to_response(appointment: Appointment, patient_name: str | None) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    response.patient_name = patient_name
    return response


async def _ensure_patient(db: AsyncSession, patient_id: int) -> Patient:
    patient = await db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Patient not found: {patient_id}",
        )
    return patient


async def _get_appointment_or_404(db: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await db.get(Appointment, appointment_id)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Appointment not found: {appointment_id}",
        )
    return appointment


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    current_user: Annotated[TokenData, Depends(require_access("appointments:list"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    patient_id: int | None = Query(None, description="Filter by patient"),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    date_from: datetime | None = Query(None, description="Scheduled at or after"),
    date_to: datetime | None = Query(None, description="Scheduled before"),
) -> list[AppointmentResponse]:
    """List appointments ordered by schedule time."""
    filters = []
    if patient_id is not None:
        filters.append(Appointment.patient_id == patient_id)
    if status_filter is not None:
        filters.append(Appointment.status == status_filter)
    if date_from is not None:
        filters.append(Appointment.scheduled_at >= date_from)
    if date_to is not None:
        filters.append(Appointment.scheduled_at < date_to)

    query = (
        select(Appointment, Patient.name)
        .join(Patient, Appointment.patient_id == Patient.id)
        .order_by(Appointment.scheduled_at.asc(), Appointment.id.asc())
    )
    if filters:
        query = query.where(and_(*filters))

    result = await db.execute(query)
    return [_to_response(appointment, name) for appointment, name in result.all()]


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    current_user: Annotated[TokenData, Depends(require_access("appointments:create"))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentResponse:
    """Schedule an appointment for an existing patient."""
    patient = await _ensure_patient(db, payload.patient_id)

    appointment = Appointment(**payload.model_dump())
    db.add(appointment)
    await db.commit()

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="appointment",
        resource_id=str(appointment.id),
        action="CREATE",
        details={"patient_id": patient.id},
    )

    return _to_response(appointment, patient.name)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: Annotated[TokenData, Depends(require_access("appointments:read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentResponse:
    """Get one appointment."""
    appointment = await _get_appointment_or_404(db, appointment_id)
    patient = await db.get(Patient, appointment.patient_id)
    return _to_response(appointment, patient.name if patient else None)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    current_user: Annotated[TokenData, Depends(require_access("appointments:update"))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentResponse:
    """Update the fields present in the request body."""
    appointment = await _get_appointment_or_404(db, appointment_id)

    changes = payload.model_dump(exclude_unset=True)
    patient = await _ensure_patient(db, changes.get("patient_id", appointment.patient_id))

    for field, value in changes.items():
        setattr(appointment, field, value)
    await db.commit()

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="appointment",
        resource_id=str(appointment_id),
        action="UPDATE",
        details={"fields": sorted(changes)},
    )

    return _to_response(appointment, patient.name)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    current_user: Annotated[TokenData, Depends(require_access("appointments:delete"))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete an appointment (admin, dentist)."""
    appointment = await _get_appointment_or_404(db, appointment_id)
    await db.delete(appointment)
    await db.commit()

    audit_logger.log_access(
        user_id=current_user.user_id,
        resource_type="appointment",
        resource_id=str(appointment_id),
        action="DELETE",
    )
