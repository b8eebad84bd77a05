"""add data rights requests and consent records

Revision ID: 0008_compliance
Revises: 0007_analytics
Create Date: 2026-10-01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.states import CONSENT_TYPES, DATA_RIGHT_TYPES, DATA_RIGHTS_REQUEST, JURISDICTIONS
from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0008_compliance"
down_revision = "0007_analytics"
branch_labels = None
depends_on = None

_ENUMS = (
    ("jurisdiction", JURISDICTIONS),
    ("data_right_type", DATA_RIGHT_TYPES),
    ("request_status", DATA_RIGHTS_REQUEST.statuses),
    ("consent_type", CONSENT_TYPES),
)


def _enum(name: str) -> postgresql.ENUM:
    values = dict(_ENUMS)[name]
    return postgresql.ENUM(*values, name=name, schema="compliance", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS:
        postgresql.ENUM(*values, name=name, schema="compliance").create(bind, checkfirst=True)

    # Response windows in calendar days; acclms.services.compliance.LEGAL_DEADLINES mirrors this table.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION compliance.legal_response_days(j compliance.jurisdiction)
        RETURNS INTEGER AS $$
        BEGIN
            RETURN CASE j
                WHEN 'colombia' THEN 15
                WHEN 'gdpr' THEN 30
                WHEN 'ccpa' THEN 45
                WHEN 'lgpd' THEN 15
                ELSE 30
            END;
        END;
        $$ LANGUAGE plpgsql IMMUTABLE
        """
    )

    op.create_table(
        "data_rights_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("jurisdiction", _enum("jurisdiction"), nullable=False),
        sa.Column("right_type", _enum("data_right_type"), nullable=False),
        sa.Column("status", _enum("request_status"), nullable=False, server_default="received"),
        sa.Column("specific_request", sa.Text(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deadline_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("extended_deadline_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("identity_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("identity_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision", sa.Text(), nullable=True),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("appealed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("appeal_reason", sa.Text(), nullable=True),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="compliance",
    )
    op.create_index(
        "ix_compliance_data_rights_requests_user_id", "data_rights_requests", ["user_id"], schema="compliance"
    )
    op.create_index(
        "ix_compliance_data_rights_requests_email", "data_rights_requests", ["email"], schema="compliance"
    )
    op.create_index(
        "ix_data_rights_requests_open_deadline",
        "data_rights_requests",
        ["deadline_at"],
        schema="compliance",
        postgresql_where=sa.text("status NOT IN ('resolved', 'denied', 'expired')"),
    )
    op.execute(updated_at_trigger_sql("compliance", "data_rights_requests"))

    op.execute(
        """
        CREATE OR REPLACE FUNCTION compliance.set_request_deadline()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.received_at IS NULL THEN
                NEW.received_at := NOW();
            END IF;
            IF NEW.deadline_at IS NULL THEN
                NEW.deadline_at := NEW.received_at
                    + make_interval(days => compliance.legal_response_days(NEW.jurisdiction));
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        "CREATE TRIGGER trg_data_rights_requests_deadline BEFORE INSERT ON compliance.data_rights_requests "
        "FOR EACH ROW EXECUTE FUNCTION compliance.set_request_deadline()"
    )

    op.create_table(
        "consent_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("anonymous_id", sa.String(255), nullable=True),
        sa.Column("consent_type", _enum("consent_type"), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False),
        sa.Column("policy_version", sa.String(50), nullable=False),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("consented_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "user_id IS NOT NULL OR anonymous_id IS NOT NULL", name="ck_consent_records_subject"
        ),
        schema="compliance",
    )
    op.create_index("ix_compliance_consent_records_user_id", "consent_records", ["user_id"], schema="compliance")
    op.create_index(
        "ix_consent_records_type", "consent_records", ["consent_type", "consented_at"], schema="compliance"
    )


def downgrade() -> None:
    op.drop_table("consent_records", schema="compliance")
    op.execute("DROP TRIGGER IF EXISTS trg_data_rights_requests_deadline ON compliance.data_rights_requests")
    op.execute("DROP FUNCTION IF EXISTS compliance.set_request_deadline()")
    op.drop_table("data_rights_requests", schema="compliance")
    op.execute("DROP FUNCTION IF EXISTS compliance.legal_response_days(compliance.jurisdiction)")
    bind = op.get_bind()
    for name, _values in reversed(_ENUMS):
        postgresql.ENUM(name=name, schema="compliance").drop(bind, checkfirst=True)
