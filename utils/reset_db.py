import asyncio
import logging
import sys

from core.database import engine
from models.base import Base
import models.registry  # noqa: F401
from utils.seed_db import seed

log = logging.getLogger(__name__)


async def async_reset_database(with_seed: bool = False):
    log.info("Dropping all tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all, checkfirst=True)

    log.info("Recreating all tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    log.info("Database schema has been reset.")

    if with_seed:
        await seed()


def reset_database(with_seed: bool = False):
    asyncio.run(async_reset_database(with_seed))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    reset_database(with_seed="--seed" in sys.argv[1:])
