"""
Create every table that does not exist yet.

Run once against a fresh database (DATABASE_URL from .env):
  python -m app.db.init_db
"""
import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

# Imported for their side effect of registering tables on Base.metadata
import app.auth.models  # noqa: F401
import app.core.models  # noqa: F401
from app.db.session import Base, engine


async def create_tables(db_engine: AsyncEngine) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    await create_tables(engine)
    await engine.dispose()
    print("Tables created:", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    asyncio.run(main())
