# app/database.py
import logging
import os

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from the .env file in the project root
# (also works when database.py is imported indirectly, e.g. from alembic)
dotenv_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)
else:
    load_dotenv()


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")

if DATABASE_URL is None:
    # Fallback to a local SQLite database next to the application package
    sqlite_db_path = os.path.join(os.path.dirname(__file__), "survey_app_fallback.db")
    DATABASE_URL = f"sqlite+aiosqlite:///{sqlite_db_path}"
    logger.warning(
        "DATABASE_URL not set, falling back to local SQLite database at %s",
        sqlite_db_path,
    )

SQL_ECHO = env_flag("SQL_ECHO", False)

Base = declarative_base()


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite only enforces foreign keys when asked to, per connection."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_session_factory(async_engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=async_engine,
        class_=AsyncSession,
    )


# echo=True prints every statement SQLAlchemy emits. Keep it off in production.
engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO)
enable_sqlite_foreign_keys(engine)

AsyncSessionFactory = make_session_factory(engine)


async def get_db_session() -> AsyncSession:
    async with AsyncSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_db_and_tables(async_engine=None):
    """
    Creates all tables that do not exist yet. Alembic stays the source of truth
    for schema changes; this is a convenience for the SQLite fallback and for
    local development (toggle with AUTO_CREATE_TABLES).
    """
    # Import models so that they are registered on Base.metadata
    from . import models  # noqa: F401

    if async_engine is None:
        async_engine = engine
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured on %s", async_engine.url.render_as_string(hide_password=True))
