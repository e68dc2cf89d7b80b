"""One database transaction per financial event.

Usage:
    async with unit_of_work(db):
        db.add(row)
        await db.execute(update(...))
    # committed here; any exception inside the block rolls everything back
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on clean exit, roll back and re-raise on any exception."""
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
