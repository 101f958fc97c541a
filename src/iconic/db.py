"""Database initialization and Tortoise ORM configuration.

Provides database() async context manager for application lifecycle, and
init_db()/close_db() for callers (tests) that manage the lifecycle themselves.
"""

from contextlib import asynccontextmanager

from loguru import logger
from tortoise import Tortoise
from tortoise.exceptions import OperationalError

from .config import get_config

MODELS = ["iconic.models"]
SCHEMA_VERSION = 1


def tortoise_config(db_path: str | None = None) -> dict:
    """Build Tortoise ORM config dict. Uses get_config().data_dir for default path."""
    if db_path is None:
        db_path = str(get_config().data_dir / "iconic.db")
    return {
        "connections": {"default": f"sqlite://{db_path}"},
        "apps": {"models": {"models": MODELS, "default_connection": "default"}},
    }


async def init_db(db_path: str | None = None) -> None:
    """Initialize Tortoise ORM and create any missing tables."""
    await Tortoise.init(config=tortoise_config(db_path))
    await Tortoise.generate_schemas(safe=True)


async def close_db() -> None:
    await Tortoise.close_connections()


@asynccontextmanager
async def database(db_path: str | None = None):
    """Open the settings database for the life of the `async with` block.

    Fails fast if another iconic process already holds the write lock.
    """
    await init_db(db_path)
    try:
        await _stamp_schema_version()
        yield
    finally:
        await close_db()


async def _stamp_schema_version() -> None:
    """Record SCHEMA_VERSION in the file header. Needs the write lock, so it also fails fast when another process holds the lock."""
    conn = Tortoise.get_connection("default")
    try:
        await conn.execute_query(f"PRAGMA user_version = {SCHEMA_VERSION}")
    except OperationalError:
        logger.critical("Settings database is locked. Is another iconic process running?")
        raise
