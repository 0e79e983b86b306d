"""Tests for demo data seeding."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.patient import Patient
from app.services.demo_data import DEMO_PATIENTS, seed_demo_patients


@pytest.mark.asyncio
async def test_seed_inserts_once(db_session: AsyncSession) -> None:
    assert await seed_demo_patients(db_session) == len(DEMO_PATIENTS)
    assert await seed_demo_patients(db_session) == 0

    patients = (await db_session.execute(select(Patient))).scalars().all()
    assert sorted(p.email for p in patients) == sorted(p["email"] for p in DEMO_PATIENTS)
