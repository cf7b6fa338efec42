# alembic/env.py
import logging
import os
import sys
from logging.config import fileConfig

from sqlalchemy import create_engine

from alembic import context

# Add the project root to the Python path so that 'app.models' and
# 'app.database' can be imported. The 'alembic' directory sits one level below.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# This is the Alembic Config object, which provides access to the values
# in the .ini file.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

# app.database loads the .env file and resolves DATABASE_URL (with SQLite fallback)
from app.database import Base, DATABASE_URL  # noqa: E402
from app import models  # noqa: E402,F401  registers the tables on Base.metadata

target_metadata = Base.metadata

ASYNC_DRIVER_SUFFIXES = ("+asyncpg", "+aiosqlite", "+aiomysql", "+asyncmy")


def sync_database_url(url: str) -> str:
    """Alembic migrates with a synchronous engine, so drop the async driver."""
    for suffix in ASYNC_DRIVER_SUFFIXES:
        if suffix in url:
            return url.replace(suffix, "")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine, so no
    DBAPI has to be available. Calls to context.execute() emit the given
    string to the script output.
    """
    offline_url = sync_database_url(DATABASE_URL)
    logger.info("Running offline migrations against %s", offline_url)
    context.configure(
        url=offline_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=offline_url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    online_url = sync_database_url(DATABASE_URL)
    logger.info("Running online migrations against %s", online_url)
    connectable = create_engine(online_url)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
