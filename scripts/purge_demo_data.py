#!/usr/bin/env python
"""Remove the seeded demo patients, their attachments and stored files.

Dry-run unless ``--apply`` is given. A patient only counts as demo data
when both its name and its email match a seeded record.
"""

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from app.core.config import get_settings
from app.models.patient import Patient
from app.services.attachments import AttachmentStore, AttachmentStoreConfig
from app.services.demo_data import DEMO_EMAILS, DEMO_PATIENTS


async def purge_demo_data(apply: bool) -> list[str]:
    """Return the names of the matched patients, deleting them when ``apply``."""
    settings = get_settings()
    engine = create_async_engine(settings.database.url)
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            patients = (
                await session.execute(
                    select(Patient).where(
                        Patient.email.in_(DEMO_EMAILS),
                        Patient.name.in_({p["name"] for p in DEMO_PATIENTS}),
                    )
                )
            ).scalars().all()
            if not apply:
                return [p.name for p in patients]

            attachments = [a for p in patients for a in p.attachments]
            for patient in patients:
                await session.delete(patient)
            await session.commit()
    finally:
        await engine.dispose()

    # Files go only after the rows are gone
    store = AttachmentStore(AttachmentStoreConfig.from_settings(settings.attachments))
    removed = await store.discard_files(attachments)
    print(f"Removed {removed} stored attachment file(s)")
    return [p.name for p in patients]


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--apply", action="store_true", help="delete instead of listing")
    args = parser.parse_args()

    names = asyncio.run(purge_demo_data(apply=args.apply))
    verb = "Deleted" if args.apply else "Would delete"
    print(f"{verb} {len(names)} demo patient(s): {', '.join(names) or '-'}")


if __name__ == "__main__":
    main()
