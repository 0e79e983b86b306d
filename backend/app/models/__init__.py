"""
Database models for DentalDesk.

This module exports all SQLAlchemy models and database utilities.
"""

from app.models.base import Base, get_db, engine, async_session_maker
from app.models.patient import Patient
from app.models.attachment import PatientAttachment, StorageMode
from app.models.appointment import Appointment, AppointmentStatus
from app.models.user import User

__all__ = [
    "Base",
    "get_db",
    "engine",
    "async_session_maker",
    "Patient",
    "PatientAttachment",
    "StorageMode",
    "Appointment",
    "AppointmentStatus",
    "User",
]
