"""
Create all timetable and catalog tables.

Usage: python -m app.db.init_db
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (registers every table on Base.metadata)
from app.core.logging import configure_logging
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


async def create_tables(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created %d tables", len(Base.metadata.tables))


async def main() -> None:
    configure_logging()
    await create_tables()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
