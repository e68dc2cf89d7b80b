from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.config import AsyncSessionLocal


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.

    Service functions own their commits (see ``libs.db.unit_of_work``); any
    transaction still open when the request ends is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        yield session
