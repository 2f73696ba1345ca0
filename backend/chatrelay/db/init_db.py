# chatrelay/db/init_db.py
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from . import models  # noqa: F401  registers tables on Base.metadata
from .session import Base, create_session_factory
from ..core.config import settings

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


async def _main() -> None:
    engine, _ = create_session_factory(settings.DATABASE_URL, echo=True)
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_main())
