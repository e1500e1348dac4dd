"""
Database seeding script for initial users.

Creates ADMIN, DISPATCHER and DRIVER users for testing and development.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from driver_backend.app.db.session import AsyncSessionLocal, engine, Base
from driver_backend.app.models.user import User
from driver_backend.app.models.enums import UserRole
from driver_backend.app.core.security import get_password_hash
from sqlalchemy import select

SEED_USERS = [
    ("admin", "admin@cct.local", "admin123", UserRole.ADMIN, "System", "Admin"),
    ("dispatcher", "dispatcher@cct.local", "dispatch123", UserRole.DISPATCHER, "Dana", "Dispatch"),
    ("driver", "driver@cct.local", "driver123", UserRole.DRIVER, "Drew", "Driver"),
]


async def seed_users():
    """
    Seed initial users with different roles, skipping any that already exist.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        created = 0
        for username, email, password, role, first_name, last_name in SEED_USERS:
            result = await db.execute(select(User).where(User.username == username))
            if result.scalar_one_or_none():
                print(f"ℹ️  {role.value} user '{username}' already exists, skipping")
                continue

            db.add(User(
                email=email,
                username=username,
                hashed_password=get_password_hash(password),
                role=role,
                first_name=first_name,
                last_name=last_name,
                is_active=True,
            ))
            created += 1
            print(f"✅ Created {role.value} user (username: {username}, password: {password})")

        await db.commit()

        print(f"\n🎉 User seeding completed ({created} created)")
        print("\nNote: additional drivers register via POST /v1/auth/register")


if __name__ == "__main__":
    asyncio.run(seed_users())
