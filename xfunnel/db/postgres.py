from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from xfunnel.core.config import settings

engine = create_async_engine(
    settings.postgres_url,
    echo=False,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
