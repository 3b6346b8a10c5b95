"""
Database setup script - create tables, seed the admin supervisor and the room directory
"""
import asyncio
from sqlalchemy import select

from hotelops.config import get_settings
from hotelops.database import engine, Base, AsyncSessionLocal
from hotelops.models import *  # noqa: F401,F403 - Import all models to register them
from hotelops.models import Room, Supervisor
from hotelops.api.auth import get_password_hash

settings = get_settings()

# Room numbers are TFRR: tower, floor, room
TOWERS = (1, 2, 3)
FLOORS = range(1, 8)
ROOMS_PER_FLOOR = 20


async def setup_database():
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    async with AsyncSessionLocal() as session:
        admin = await session.execute(select(Supervisor).where(Supervisor.role == "admin"))
        if not admin.scalars().first():
            session.add(Supervisor(
                nombre=settings.DEFAULT_ADMIN_NAME,
                correo=settings.DEFAULT_ADMIN_EMAIL.lower(),
                role="admin",
                hashed_password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
            ))
            print(f"Admin supervisor {settings.DEFAULT_ADMIN_EMAIL} created")

        existing = set((await session.execute(select(Room.number))).scalars().all())
        added = 0
        for tower in TOWERS:
            for floor in FLOORS:
                for room in range(1, ROOMS_PER_FLOOR + 1):
                    number = tower * 1000 + floor * 100 + room
                    if number in existing:
                        continue
                    session.add(Room(number=number, tower=tower, floor=floor))
                    added += 1

        await session.commit()
        print(f"{added} rooms added")

    print("\nDatabase setup complete!")


if __name__ == "__main__":
    asyncio.run(setup_database())
