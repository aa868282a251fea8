"""
Async database access for the chat log and handoff requests (Neon / Postgres).
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backend.core.config import config

logger = logging.getLogger("database")


def to_async_url(url: str):
    """postgres:// style URL -> asyncpg URL plus connect args.

    asyncpg rejects libpq's sslmode/channel_binding query params, so they are
    dropped and ssl is passed as a connect arg instead.
    """
    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in ("postgres", "postgresql"):
        scheme = "postgresql+asyncpg"

    query = dict(parse_qsl(parts.query))
    connect_args = {}
    sslmode = query.pop("sslmode", None)
    query.pop("channel_binding", None)
    if sslmode and sslmode != "disable":
        connect_args["ssl"] = True

    return urlunsplit((scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)), connect_args


class NeonDatabase:
    engine: Optional[AsyncEngine] = None
    session_factory: Optional[async_sessionmaker] = None

    @classmethod
    def is_configured(cls) -> bool:
        return bool(config.DATABASE_URL)

    @classmethod
    def init(cls, url: Optional[str] = None) -> AsyncEngine:
        if cls.engine is not None:
            return cls.engine

        url = url or config.DATABASE_URL
        if not url:
            raise RuntimeError("DATABASE_URL is not set")

        async_url, connect_args = to_async_url(url)
        cls.engine = create_async_engine(async_url, pool_pre_ping=True, connect_args=connect_args)
        cls.session_factory = async_sessionmaker(cls.engine, expire_on_commit=False, class_=AsyncSession)
        logger.info("Database engine initialized")
        return cls.engine

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncIterator[AsyncSession]:
        if cls.session_factory is None:
            cls.init()
        async with cls.session_factory() as session:
            yield session

    @classmethod
    async def dispose(cls) -> None:
        if cls.engine is not None:
            await cls.engine.dispose()
        cls.engine = None
        cls.session_factory = None
