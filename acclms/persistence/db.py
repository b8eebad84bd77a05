from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from acclms.core.config import get_settings
from acclms.domain.registry import get_schema


settings = get_settings()


def _engine_kwargs(search_path: str | None = None) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    # Keep pools bounded; every service role also carries a server-side CONNECTION LIMIT.
    kwargs["pool_size"] = max(1, int(settings.api_db_pool_size))
    kwargs["max_overflow"] = max(0, int(settings.api_db_max_overflow))
    kwargs["pool_timeout"] = 30
    kwargs["pool_recycle"] = 1800
    server_settings: dict[str, str] = {}
    if settings.api_db_statement_timeout_ms > 0:
        server_settings["statement_timeout"] = str(int(settings.api_db_statement_timeout_ms))
    if search_path:
        server_settings["search_path"] = search_path
    if server_settings:
        kwargs["connect_args"] = {"server_settings": server_settings}
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs())
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


def create_service_engine(schema: str) -> AsyncEngine:
    # Connect as <schema>_svc with search_path pinned to its own schema, then public for shared functions.
    service = get_schema(schema)
    return create_async_engine(
        settings.service_database_url(service.name),
        **_engine_kwargs(search_path=f"{service.name}, public"),
    )


@asynccontextmanager
async def get_session() -> AsyncSession:
    async with SessionLocal() as session:
        yield session


def pool_stats() -> dict[str, int | None]:
    # Expose pool counters for the health endpoint without querying Postgres internals.
    pool = engine.sync_engine.pool
    checked_out_fn = getattr(pool, "checkedout", None)
    size_fn = getattr(pool, "size", None)
    overflow_fn = getattr(pool, "overflow", None)
    return {
        "size": int(size_fn()) if callable(size_fn) else None,
        "checked_out": int(checked_out_fn()) if callable(checked_out_fn) else None,
        "overflow": int(overflow_fn()) if callable(overflow_fn) else None,
    }
