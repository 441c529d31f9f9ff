# database.py
# Establishes the async connection to the SQL database and the ORM base.

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

def get_db_url():
    """Get the database URL for use in migration scripts."""
    return settings.DATABASE_URL

def get_alembic_db_url():
    """Get the synchronous database URL for Alembic migrations."""
    return (
        settings.DATABASE_URL
        .replace("postgresql+asyncpg", "postgresql")
        .replace("sqlite+aiosqlite", "sqlite")
    )

def _engine_kwargs(url: str) -> dict:
    # asyncpg takes server settings, sqlite needs cross-thread access
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": NullPool,
        "connect_args": {
            "timeout": 30,
            "server_settings": {"application_name": "omnibiz_core"},
        },
    }

engine = create_async_engine(SQLALCHEMY_DATABASE_URL, echo=False, **_engine_kwargs(SQLALCHEMY_DATABASE_URL))

SessionLocal = async_sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)

Base = declarative_base()
