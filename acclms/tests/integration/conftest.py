from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from acclms.persistence.db import engine


@pytest.fixture(autouse=True)
async def require_migrated_database() -> None:
    # Integration tests need a reachable database at alembic head.
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1 FROM kb.related_articles LIMIT 1"))
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"database unavailable or not migrated: {exc.__class__.__name__}")
    yield
