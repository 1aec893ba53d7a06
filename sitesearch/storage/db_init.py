from loguru import logger
from tortoise import Tortoise, connections

from sitesearch.storage.models import MODEL_MODULES
from sitesearch.utils.db_utils import to_tortoise_url


async def init_db(database_url: str | None = None) -> None:
    """
    Connect Tortoise ORM and create missing tables.
    """
    db_url = to_tortoise_url(database_url)

    logger.info("Initializing database and ORM models...")

    await Tortoise.init(
        db_url=db_url,
        modules={"models": MODEL_MODULES},
    )

    await Tortoise.generate_schemas(safe=True)
    logger.info("Database tables created or verified.")


async def close_db() -> None:
    await connections.close_all()
