"""add partitioned analytics events and sessions

Revision ID: 0007_analytics
Revises: 0006_notifications
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.registry import get_schema
from acclms.domain.states import ANALYTICS_EVENT_TYPES, ANALYTICS_PLATFORMS
from acclms.persistence.provisioning import function_grant_statements


revision = "0007_analytics"
down_revision = "0006_notifications"
branch_labels = None
depends_on = None

INITIAL_PARTITION_MONTHS = 13

event_type_enum = postgresql.ENUM(*ANALYTICS_EVENT_TYPES, name="event_type", schema="analytics", create_type=False)
platform_enum = postgresql.ENUM(*ANALYTICS_PLATFORMS, name="platform", schema="analytics", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    postgresql.ENUM(*ANALYTICS_EVENT_TYPES, name="event_type", schema="analytics").create(bind, checkfirst=True)
    postgresql.ENUM(*ANALYTICS_PLATFORMS, name="platform", schema="analytics").create(bind, checkfirst=True)

    op.create_table(
        "sessions",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("entry_page", sa.Text(), nullable=True),
        sa.Column("exit_page", sa.Text(), nullable=True),
        sa.Column("page_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("events_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("platform", platform_enum, nullable=False, server_default="unknown"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="analytics",
    )
    op.create_index("ix_analytics_sessions_user_id", "sessions", ["user_id"], schema="analytics")
    op.create_index(
        "ix_sessions_active",
        "sessions",
        ["last_activity_at"],
        schema="analytics",
        postgresql_where=sa.text("is_active"),
    )

    # Partition key must be part of the primary key on a partitioned table.
    op.create_table(
        "events",
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("created_month", sa.Date(), nullable=False),
        sa.Column("event_type", event_type_enum, nullable=False),
        sa.Column("custom_event_name", sa.Text(), nullable=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("page_url", sa.Text(), nullable=True),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("platform", platform_enum, nullable=False, server_default="unknown"),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column("country_code", sa.String(2), nullable=True),
        sa.Column("properties", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("entity_type", sa.Text(), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("event_id", "created_month", name="pk_events"),
        sa.CheckConstraint(
            "created_month = (date_trunc('month', \"timestamp\" AT TIME ZONE 'UTC'))::date",
            name="ck_events_created_month",
        ),
        schema="analytics",
        postgresql_partition_by="RANGE (created_month)",
    )
    op.create_index("ix_events_user_timestamp", "events", ["user_id", "timestamp"], schema="analytics")
    op.create_index("ix_events_session_id", "events", ["session_id"], schema="analytics")
    op.create_index("ix_events_type_timestamp", "events", ["event_type", "timestamp"], schema="analytics")
    op.create_index("ix_events_entity", "events", ["entity_type", "entity_id"], schema="analytics")

    # SECURITY DEFINER lets analytics_svc add months without owning the parent table.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION analytics.create_event_partition(partition_month DATE)
        RETURNS TEXT
        LANGUAGE plpgsql
        SECURITY DEFINER
        SET search_path = analytics, pg_temp
        AS $$
        DECLARE
            range_start DATE := date_trunc('month', partition_month)::DATE;
            range_end DATE := (date_trunc('month', partition_month) + INTERVAL '1 month')::DATE;
            partition_table TEXT := 'events_' || to_char(range_start, 'YYYY_MM');
        BEGIN
            EXECUTE format(
                'CREATE TABLE IF NOT EXISTS analytics.%I PARTITION OF analytics.events FOR VALUES FROM (%L) TO (%L)',
                partition_table,
                range_start,
                range_end
            );
            RETURN partition_table;
        END;
        $$
        """
    )
    for statement in function_grant_statements(get_schema("analytics")):
        op.execute(statement)

    op.execute(
        f"""
        DO $$
        BEGIN
            FOR offset_months IN 0..{INITIAL_PARTITION_MONTHS - 1} LOOP
                PERFORM analytics.create_event_partition(
                    (date_trunc('month', NOW() AT TIME ZONE 'UTC') + make_interval(months => offset_months))::DATE
                );
            END LOOP;
        END
        $$
        """
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION analytics.update_session_stats()
        RETURNS TRIGGER AS $$
        BEGIN
            UPDATE analytics.sessions
            SET events_count = events_count + 1,
                page_views = page_views + CASE WHEN NEW.event_type = 'page_view' THEN 1 ELSE 0 END,
                last_activity_at = GREATEST(last_activity_at, NEW."timestamp"),
                exit_page = COALESCE(NEW.page_url, exit_page)
            WHERE session_id = NEW.session_id;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        "CREATE TRIGGER trg_events_session_stats AFTER INSERT ON analytics.events "
        "FOR EACH ROW EXECUTE FUNCTION analytics.update_session_stats()"
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_events_session_stats ON analytics.events")
    op.execute("DROP FUNCTION IF EXISTS analytics.update_session_stats()")
    op.execute("DROP TABLE IF EXISTS analytics.events CASCADE")
    op.execute("DROP FUNCTION IF EXISTS analytics.create_event_partition(DATE)")
    op.drop_table("sessions", schema="analytics")
    bind = op.get_bind()
    postgresql.ENUM(name="platform", schema="analytics").drop(bind, checkfirst=True)
    postgresql.ENUM(name="event_type", schema="analytics").drop(bind, checkfirst=True)
