"""
Seed the first superadmin account.

Run once after init_db with env set:
  DEFAULT_ADMIN_EMAIL=admin@example.com
  DEFAULT_ADMIN_PASSWORD=YourSecurePassword

Creates the user if the email is unknown, otherwise promotes it to superadmin
and resets its password.
"""
import asyncio

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import UserRole, UserStatus
from app.db.session import AsyncSessionLocal


async def seed_admin(db: AsyncSession) -> None:
    email = (settings.default_admin_email or "").strip().lower()
    password = settings.default_admin_password
    if not email or not password:
        print("DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD not set; nothing to seed.")
        return

    result = await db.execute(select(User).where(func.lower(User.email) == email))
    user = result.scalar_one_or_none()
    if not user:
        user = User(
            name=settings.default_admin_name,
            email=email,
            username=email.split("@", 1)[0],
            password_hash=hash_password(password),
            role=UserRole.SUPERADMIN.value,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        print("Created superadmin user:", email)
    else:
        user.role = UserRole.SUPERADMIN.value
        user.status = UserStatus.ACTIVE.value
        user.password_hash = hash_password(password)
        print("Updated existing user to superadmin:", email)

    await db.commit()
    print("Admin seed done.")


async def main() -> None:
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
