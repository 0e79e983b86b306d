"""API v1 Router - Aggregates all API endpoints."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    attachments,
    auth,
    patients,
)

api_router = APIRouter()

# Authentication endpoints
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

# Patient management
api_router.include_router(
    patients.router,
    prefix="/patients",
    tags=["Patients"],
)

# Patient attachments (X-rays, reports)
api_router.include_router(
    attachments.router,
    prefix="/patients",
    tags=["Attachments"],
)

# Appointment scheduling
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["Appointments"],
)
