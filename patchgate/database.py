"""Database connection and session management."""

import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from patchgate.config import settings

# Query parameters libpq understands but asyncpg rejects
_SSL_QUERY_PARAMS = ("sslmode", "ssl")


def _ssl_context(verify: bool) -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if not verify:
        # Hosted poolers often present chains the local trust store can't complete
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def split_ssl_params(url: str, verify: bool | None = None) -> tuple[str, dict]:
    """
    Move SSL settings out of the URL into asyncpg connect_args.

    Returns (url without sslmode/ssl, connect_args). connect_args is empty
    when the URL didn't ask for SSL.
    """
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    if not any(param in query for param in _SSL_QUERY_PARAMS):
        return url, {}
    for param in _SSL_QUERY_PARAMS:
        query.pop(param, None)
    stripped = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
    if verify is None:
        verify = settings.database_ssl_verify
    return stripped, {"ssl": _ssl_context(verify)}


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


_db_url, _connect_args = split_ssl_params(settings.database_url)

engine = create_async_engine(
    _db_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
