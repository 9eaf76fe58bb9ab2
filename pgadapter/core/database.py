from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pgadapter.core.adapter import PostgresAdapter
from pgadapter.core.cache import ResultCache
from pgadapter.core.config import settings


def create_engine_from_settings() -> AsyncEngine:
    return create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)


def create_adapter(engine: AsyncEngine) -> PostgresAdapter:
    cache = ResultCache(
        max_entries=settings.CACHE_MAX_ENTRIES,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
    )
    return PostgresAdapter(engine, cache=cache, schemaname=settings.DB_SCHEMA)


# The adapter lives on app.state, one per process
async def get_adapter(request: Request) -> PostgresAdapter:
    return request.app.state.adapter
