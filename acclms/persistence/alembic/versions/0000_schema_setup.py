"""provision service schemas and roles

Revision ID: 0000_schema_setup
Revises:
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op

from acclms.core.config import get_settings
from acclms.domain.registry import SCHEMAS
from acclms.persistence.provisioning import build_provisioning_statements, build_teardown_statements


revision = "0000_schema_setup"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create schemas, per-service roles, grants, extensions and the shared updated_at function.
    bind = op.get_bind()
    statements = build_provisioning_statements(SCHEMAS, mode=get_settings().provisioning_mode)
    for statement in statements:
        bind.exec_driver_sql(statement)


def downgrade() -> None:
    bind = op.get_bind()
    for statement in build_teardown_statements(SCHEMAS):
        bind.exec_driver_sql(statement)
