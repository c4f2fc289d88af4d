from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.db.base import Base

engine_options = {"echo": settings.DB_ECHO}
if settings.DATABASE_URL.startswith("sqlite"):
    # aiosqlite connections must not be shared between event loops
    engine_options["poolclass"] = NullPool

# Use the DATABASE_URL from the settings
engine = create_async_engine(settings.DATABASE_URL, **engine_options)

SessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    # Importing the models registers their tables on Base.metadata
    from app.models import child_record, principal  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    from app.models import child_record, principal  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
