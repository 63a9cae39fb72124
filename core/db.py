"""
Async database engine and session management.

Purpose:
- Create one SQLAlchemy async engine per process (MySQL via aiomysql)
- Provide async session factory for dependency injection
- Provide Base declarative class for ORM models
- Dispose the pool on shutdown (see main.on_shutdown)

When MYSQL_ASYNC_URL is "disabled" no engine is created and the API runs on
the in-memory journey store.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config.settings import settings
import logging
from typing import AsyncGenerator, Optional

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def db_enabled() -> bool:
	return bool(settings.MYSQL_ASYNC_URL) and not settings.MYSQL_ASYNC_URL.startswith("disabled")


def init_engine(url: str | None = None) -> Optional[AsyncEngine]:
	"""Create the process-wide engine and session factory (idempotent)."""
	global engine, async_session_maker
	if engine is not None:
		return engine
	url = url or settings.MYSQL_ASYNC_URL
	if not url or url.startswith("disabled"):
		logger.warning("MYSQL_ASYNC_URL is 'disabled' - DB engine will not be created; using in-memory store.")
		return None
	engine = create_async_engine(url, echo=settings.DEBUG, pool_pre_ping=True)
	async_session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
	logger.info("Async DB engine created for %s", engine.url.render_as_string(hide_password=True))
	return engine


async def dispose_engine():
	global engine, async_session_maker
	if engine is not None:
		await engine.dispose()
		logger.info("Async DB engine disposed")
	engine = None
	async_session_maker = None


if settings.USE_DB and db_enabled():
	init_engine()


async def get_db_session() -> AsyncGenerator[Optional[AsyncSession], None]:
	"""
	Yield an AsyncSession when DB is enabled; otherwise yield None so callers can
	fall back to the in-memory journey store.
	"""
	if async_session_maker is None:
		yield None
		return

	async with async_session_maker() as session:
		yield session
