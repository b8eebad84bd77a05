"""add content assets, derived media, access tokens and usage statistics

Revision ID: 0011_content
Revises: 0010_quiz_questions_user_stats
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.states import ACCESS_TOKEN_TYPES, ASSET_TYPES, CONTENT_ASSET, USAGE_PERIOD_TYPES
from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0011_content"
down_revision = "0010_quiz_questions_user_stats"
branch_labels = None
depends_on = None

_ENUMS = (
    ("asset_type", ASSET_TYPES),
    ("processing_status", CONTENT_ASSET.statuses),
)


def _enum(name: str) -> postgresql.ENUM:
    values = dict(_ENUMS)[name]
    return postgresql.ENUM(*values, name=name, schema="content", create_type=False)


def _in(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN ({', '.join(repr(value) for value in values)})"


def _asset_id() -> sa.Column:
    return sa.Column(
        "asset_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("content.assets.asset_id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS:
        postgresql.ENUM(*values, name=name, schema="content").create(bind, checkfirst=True)

    op.create_table(
        "assets",
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("checksum", sa.String(64), nullable=True),
        sa.Column("storage_key", sa.String(500), nullable=False, unique=True),
        sa.Column("storage_backend", sa.String(20), nullable=False, server_default="local"),
        sa.Column("storage_bucket", sa.String(255), nullable=True),
        sa.Column("asset_type", _enum("asset_type"), nullable=False),
        sa.Column("status", _enum("processing_status"), nullable=False, server_default="pending"),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("size_bytes > 0", name="ck_assets_size_positive"),
        schema="content",
    )
    op.create_index("ix_content_assets_owner_id", "assets", ["owner_id"], schema="content")
    op.create_index("ix_content_assets_status", "assets", ["status"], schema="content")
    op.create_index("ix_assets_course_lesson", "assets", ["course_id", "lesson_id"], schema="content")
    op.execute(updated_at_trigger_sql("content", "assets"))

    op.create_table(
        "video_variants",
        sa.Column("variant_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _asset_id(),
        sa.Column("quality", sa.String(20), nullable=False),
        sa.Column("codec", sa.String(20), nullable=False),
        sa.Column("bitrate_kbps", sa.Integer(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("is_ready", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("asset_id", "quality", "codec", name="uq_video_variants_asset_quality_codec"),
        schema="content",
    )
    op.create_index("ix_content_video_variants_asset_id", "video_variants", ["asset_id"], schema="content")

    op.create_table(
        "thumbnails",
        sa.Column("thumbnail_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _asset_id(),
        sa.Column("thumbnail_type", sa.String(20), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("timestamp_seconds", sa.Numeric(10, 3), nullable=True),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("asset_id", "thumbnail_type", name="uq_thumbnails_asset_type"),
        schema="content",
    )
    op.create_index("ix_content_thumbnails_asset_id", "thumbnails", ["asset_id"], schema="content")

    op.create_table(
        "transcriptions",
        sa.Column("transcription_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _asset_id(),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("format", sa.String(10), nullable=False),
        sa.Column("is_auto_generated", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("asset_id", "language", "format", name="uq_transcriptions_asset_language_format"),
        schema="content",
    )
    op.create_index("ix_content_transcriptions_asset_id", "transcriptions", ["asset_id"], schema="content")

    op.create_table(
        "access_tokens",
        sa.Column("token_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _asset_id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("token_type", sa.String(20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(_in("token_type", ACCESS_TOKEN_TYPES), name="ck_access_tokens_type"),
        sa.CheckConstraint("use_count <= max_uses", name="ck_access_tokens_uses"),
        schema="content",
    )
    op.create_index("ix_content_access_tokens_asset_id", "access_tokens", ["asset_id"], schema="content")
    op.create_index("ix_content_access_tokens_user_id", "access_tokens", ["user_id"], schema="content")
    op.create_index("ix_content_access_tokens_expires_at", "access_tokens", ["expires_at"], schema="content")

    op.create_table(
        "usage_stats",
        sa.Column("stat_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _asset_id(),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_type", sa.String(10), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stream_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bytes_transferred", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("unique_users", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("asset_id", "period_start", "period_type", name="uq_usage_stats_asset_period"),
        sa.CheckConstraint(_in("period_type", USAGE_PERIOD_TYPES), name="ck_usage_stats_period_type"),
        schema="content",
    )
    op.create_index("ix_content_usage_stats_asset_id", "usage_stats", ["asset_id"], schema="content")
    op.execute(updated_at_trigger_sql("content", "usage_stats"))


def downgrade() -> None:
    for table in ("usage_stats", "access_tokens", "transcriptions", "thumbnails", "video_variants", "assets"):
        op.drop_table(table, schema="content")
    bind = op.get_bind()
    for name, _values in reversed(_ENUMS):
        postgresql.ENUM(name=name, schema="content").drop(bind, checkfirst=True)
