"""API v1 endpoints."""

from app.api.v1.endpoints import (
    appointments,
    attachments,
    auth,
    patients,
)

__all__ = [
    "patients",
    "attachments",
    "appointments",
    "auth",
]
