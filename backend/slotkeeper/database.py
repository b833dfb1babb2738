from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    kwargs: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        kwargs["pool_recycle"] = 3600
    return create_async_engine(database_url, **kwargs)


settings = get_settings()

engine = build_engine(settings.database_url, echo=settings.echo_sql)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
