"""Optional demo data seeding (development only)."""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.patient import Patient

logger = get_logger(__name__)


DEMO_PATIENTS = [
    {
        "name": "John Doe",
        "email": "john.doe@demo.dentaldesk.dev",
        "phone": "555-0101",
        "date_of_birth": date(1965, 3, 15),
        "notes": "Demo record: crown on 36, annual check-up",
    },
    {
        "name": "Jane Smith",
        "email": "jane.smith@demo.dentaldesk.dev",
        "phone": "555-0102",
        "date_of_birth": date(1978, 7, 22),
        "notes": "Demo record: orthodontic follow-up",
    },
    {
        "name": "Robert Johnson",
        "email": "robert.johnson@demo.dentaldesk.dev",
        "phone": "555-0103",
        "date_of_birth": date(1955, 11, 8),
        "notes": "Demo record: periodontal maintenance",
    },
]

DEMO_EMAILS = frozenset(p["email"] for p in DEMO_PATIENTS)


async def seed_demo_patients(db: AsyncSession) -> int:
    """Insert demo patients if they do not already exist."""
    inserted = 0
    for demo in DEMO_PATIENTS:
        exists_result = await db.execute(select(Patient).where(Patient.email == demo["email"]))
        if exists_result.scalar_one_or_none():
            continue
        db.add(Patient(**demo, attachments=[]))
        inserted += 1

    if inserted:
        await db.commit()
        logger.warning("Demo patients seeded", count=inserted)
    return inserted
