from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


def get_database_url() -> str:
    """Get database URL with SSL support for production databases."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    base_url = (
        f"postgresql+psycopg2://{settings.POSTGRES_USER}:"
        f"{settings.POSTGRES_PASSWORD}@{settings.POSTGRES_HOST}:"
        f"{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
    )

    # Hosted Postgres (Supabase, Render) requires SSL connections
    if settings.ENVIRONMENT.lower() in ("production", "staging"):
        base_url += "?sslmode=require"

    return base_url


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Session work runs in a thread pool, and an in-memory database
        # only exists on a single connection
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.endswith("://"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


_database_url = get_database_url()
engine = create_engine(_database_url, **_engine_kwargs(_database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
