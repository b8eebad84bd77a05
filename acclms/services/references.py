"""Application-level integrity for cross-schema references.

Columns that point into another bounded context are bare UUIDs tagged with
``info={"references": "<schema>.<table>"}``. The database never enforces
them, so services call :func:`ensure_reference` / :func:`ensure_references`
before writing and :func:`foreign_keys_crossing_schemas` proves that no
real foreign key slipped across a schema boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy import MetaData, Table, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import ReferenceIntegrityError
from acclms.domain.models import REFERENCES_INFO_KEY, Base
from acclms.domain.registry import may_read


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossSchemaReference:
    source_schema: str
    source_table: str
    column: str
    target: str

    @property
    def target_schema(self) -> str:
        return self.target.split(".", 1)[0]

    @property
    def source(self) -> str:
        return f"{self.source_schema}.{self.source_table}.{self.column}"


def cross_schema_references(metadata: MetaData = Base.metadata) -> list[CrossSchemaReference]:
    refs: list[CrossSchemaReference] = []
    for table in metadata.sorted_tables:
        for column in table.columns:
            target = column.info.get(REFERENCES_INFO_KEY)
            if target:
                refs.append(CrossSchemaReference(table.schema or "public", table.name, column.name, target))
    return refs


def foreign_keys_crossing_schemas(metadata: MetaData = Base.metadata) -> list[str]:
    # Any entry here breaks independent deployability of a service schema.
    crossing: list[str] = []
    for table in metadata.sorted_tables:
        for fk in table.foreign_keys:
            target_schema = fk.column.table.schema
            if target_schema != table.schema:
                crossing.append(f"{table.schema}.{table.name}.{fk.parent.name} -> {fk.target_fullname}")
    return crossing


def unreadable_references(metadata: MetaData = Base.metadata) -> list[CrossSchemaReference]:
    # References whose owning role has no SELECT grant on the target schema.
    return [
        ref
        for ref in cross_schema_references(metadata)
        if not may_read(ref.source_schema, ref.target_schema)
    ]


def _target_table(target: str, metadata: MetaData) -> Table:
    table = metadata.tables.get(target)
    if table is None:
        raise KeyError(f"unknown reference target: {target}")
    return table


async def reference_exists(
    session: AsyncSession, target: str, value: Any, *, metadata: MetaData = Base.metadata
) -> bool:
    table = _target_table(target, metadata)
    pk_column = list(table.primary_key.columns)[0]
    result = await session.execute(select(exists().where(pk_column == value)))
    return bool(result.scalar())


async def ensure_reference(
    session: AsyncSession,
    target: str,
    value: Any,
    *,
    source: str,
    metadata: MetaData = Base.metadata,
) -> None:
    """Raise :class:`ReferenceIntegrityError` when ``value`` is not a row of ``target``.

    ``None`` is accepted; nullability is the column's concern, not the reference's.
    """
    if value is None:
        return
    if not await reference_exists(session, target, value, metadata=metadata):
        logger.warning("reference_missing source=%s target=%s value=%s", source, target, value)
        raise ReferenceIntegrityError(source=source, target=target, value=value)


async def ensure_references(session: AsyncSession, obj: Base) -> None:
    # Validate every tagged column on a pending ORM object.
    table = obj.__table__
    for column in table.columns:
        target = column.info.get(REFERENCES_INFO_KEY)
        if not target:
            continue
        attr = obj.__mapper__.get_property_by_column(column).key
        await ensure_reference(
            session,
            target,
            getattr(obj, attr),
            source=f"{table.schema}.{table.name}.{column.name}",
        )
