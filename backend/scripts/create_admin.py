#!/usr/bin/env python3
"""Script to create an administrator account."""

import asyncio
import sys
from getpass import getpass

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.security import hash_password
from app.models import Base
from app.models.user import User, UserRole, UserStatus


async def create_admin():
    """Create an active, verified ADMIN or SUPER_ADMIN interactively."""
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        print("\n=== Create an administrator ===\n")
        email = input("Email: ").strip().lower()
        if not email:
            print("Email is required.")
            return

        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"A user with email {email} already exists.")
            return

        password = getpass("Password (min 8 characters): ")
        if len(password) < 8:
            print("Password must be at least 8 characters long.")
            return

        password_confirm = getpass("Confirm password: ")
        if password != password_confirm:
            print("Passwords do not match.")
            return

        first_name = input("First name (optional): ").strip() or None
        last_name = input("Last name (optional): ").strip() or None
        super_admin = input("Super admin? (y/N): ").strip().lower() == "y"
        role = UserRole.SUPER_ADMIN if super_admin else UserRole.ADMIN

        admin = User(
            email=email,
            password_hash=hash_password(password),
            role=role,
            status=UserStatus.ACTIVE,
            email_verified=True,
            first_name=first_name,
            last_name=last_name,
        )

        session.add(admin)
        await session.commit()

        print("\nAdministrator created.")
        print(f"   Email: {email}")
        print(f"   Role: {role.value}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())
