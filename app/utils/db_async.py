"""Async SQLAlchemy engine, session and schedule-store helpers."""

import ssl
from typing import Any, AsyncGenerator, Dict, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import Depends
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.config import settings
from app.services.schedule_store import SqlScheduleStore

# asyncpg rejects these libpq-only query arguments
_LIBPQ_ONLY_ARGS = {"sslmode", "channel_binding"}


def _normalize_db_url(url: str) -> str:
    """Select the asyncpg driver for bare postgres:// / postgresql:// URLs.

    An explicit driver (``postgresql+psycopg``) is left alone.
    """
    try:
        u = make_url(url)
    except Exception:
        for prefix in ("postgresql://", "postgres://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url
    if u.drivername in ("postgres", "postgresql"):
        u = u.set(drivername="postgresql+asyncpg")
    return u.render_as_string(hide_password=False)


def _ssl_connect_args(sslmode: str | None) -> Dict[str, Any]:
    if not sslmode:
        return {}
    mode = sslmode.lower()
    if mode == "disable":
        return {"ssl": False}
    if mode in {"allow", "prefer"}:
        # Let asyncpg negotiate TLS on its own
        return {}
    context = ssl.create_default_context()
    if mode in {"require", "verify-ca"}:
        context.check_hostname = False
    if mode == "require":
        context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}


def _prepare_asyncpg_connection(url: str) -> Tuple[str, Dict[str, Any]]:
    """Strip libpq-only query args and derive asyncpg connect kwargs."""
    split = urlsplit(_normalize_db_url(url))
    pairs = parse_qsl(split.query, keep_blank_values=True)
    sslmode = next((v for k, v in pairs if k == "sslmode"), None)
    kept = [(k, v) for k, v in pairs if k not in _LIBPQ_ONLY_ARGS]
    cleaned = urlunsplit(split._replace(query=urlencode(kept, doseq=True))).rstrip("?")
    return cleaned, _ssl_connect_args(sslmode)


DATABASE_URL, CONNECT_ARGS = _prepare_asyncpg_connection(settings.database_url)

engine = create_async_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    pool_pre_ping=True,
    connect_args=CONNECT_ARGS,
)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


def load_schema_modules() -> None:
    """Import table modules so SQLModel.metadata knows every table."""
    from app.schemas import assignments, seasons  # noqa: F401


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with SessionLocal() as session:
        yield session


def build_schedule_store(session: AsyncSession) -> SqlScheduleStore:
    """Schedule store wired with the configured season-lock policy."""
    return SqlScheduleStore(
        session,
        lock_timeout_ms=settings.season_lock_timeout_ms,
        lock_attempts=settings.season_lock_attempts,
        lock_backoff_ms=settings.season_lock_backoff_ms,
    )


async def get_schedule_store(
    session: AsyncSession = Depends(get_session),
) -> SqlScheduleStore:
    """FastAPI dependency: request-scoped schedule store."""
    return build_schedule_store(session)


async def init_db():
    """Initialize the database (create tables)."""
    load_schema_modules()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose of the async engine and its connection pool."""
    await engine.dispose()


def describe_database_url(url: str) -> str:
    """Return a sanitized description of the DB URL for logging (no password)."""
    try:
        u = make_url(url)
    except Exception:
        return "<unparseable database URL>"
    port = f":{u.port}" if u.port else ""
    return f"{u.drivername}://{u.username or '?'}@{u.host or '?'}{port}/{u.database or '?'}"
