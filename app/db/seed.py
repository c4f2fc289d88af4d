"""Demo principals so the UIN + code sign-in can be exercised locally."""

import asyncio
import logging

from sqlalchemy import select

from app.db.session import SessionLocal, init_db
from app.models.principal import Principal

logger = logging.getLogger(__name__)

DEMO_PRINCIPALS = [
    {
        "uin": "1234567890",
        "name": "Aritraditya Roy",
        "email": "aritraditya.roy@example.com",
        "phone": "+91-9876543210",
        "address": "123 Main Street, New Delhi, Delhi 110001",
        "date_of_birth": "1985-06-15",
        "gender": "Male",
    },
    {
        "uin": "9876543210",
        "name": "Jane Smith",
        "email": "jane.smith@example.com",
        "phone": "+91-8765432109",
        "address": "456 Park Avenue, Mumbai, Maharashtra 400001",
        "date_of_birth": "1990-03-20",
        "gender": "Female",
    },
    {
        "uin": "5555555555",
        "name": "Dr. Alice Johnson",
        "email": "alice.johnson@healthcare.gov.in",
        "phone": "+91-7654321098",
        "address": "789 Hospital Road, Bangalore, Karnataka 560001",
        "date_of_birth": "1982-11-10",
        "gender": "Female",
    },
    {
        "uin": "1111111111",
        "name": "Health Worker Demo",
        "email": "demo@health.gov.in",
        "phone": "+91-9999999999",
        "address": "Demo Address, Demo City, Demo State 123456",
        "date_of_birth": "1988-01-01",
        "gender": "Male",
    },
]


async def seed_principals() -> int:
    """Insert the demo principals that are missing. Returns how many were added."""
    added = 0
    async with SessionLocal() as db:
        for data in DEMO_PRINCIPALS:
            result = await db.execute(select(Principal).filter(Principal.uin == data["uin"]))
            if result.scalars().first() is not None:
                continue
            db.add(Principal(employee_id=f"HW-{data['uin'][-6:]}", **data))
            added += 1
        await db.commit()

    logger.info("Seeded %d demo principals", added)
    return added


async def main() -> None:
    await init_db()
    await seed_principals()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    asyncio.run(main())
