"""add knowledge base categories, articles, versions, feedback and relations

Revision ID: 0012_knowledge_base
Revises: 0011_content
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from acclms.domain.states import KB_ARTICLE, KB_CONTENT_TYPES, KB_VISIBILITIES
from acclms.persistence.provisioning import updated_at_trigger_sql


revision = "0012_knowledge_base"
down_revision = "0011_content"
branch_labels = None
depends_on = None

_ENUMS = (
    ("article_status", KB_ARTICLE.statuses),
    ("content_type", KB_CONTENT_TYPES),
    ("article_visibility", KB_VISIBILITIES),
)


def _enum(name: str) -> postgresql.ENUM:
    values = dict(_ENUMS)[name]
    return postgresql.ENUM(*values, name=name, schema="kb", create_type=False)


def _jsonb_list(name: str) -> sa.Column:
    return sa.Column(
        name, postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")
    )


def _article_id(name: str = "article_id", **kwargs) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("kb.articles.article_id", ondelete="CASCADE"),
        nullable=False,
        **kwargs,
    )


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS:
        postgresql.ENUM(*values, name=name, schema="kb").create(bind, checkfirst=True)

    op.create_table(
        "categories",
        sa.Column("category_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("color", sa.String(7), nullable=True),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("kb.categories.category_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _jsonb_list("path"),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("article_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("slug", "tenant_id", name="uq_kb_categories_slug_tenant"),
        schema="kb",
    )
    op.create_index("ix_kb_categories_parent_id", "categories", ["parent_id"], schema="kb")
    op.execute(updated_at_trigger_sql("kb", "categories"))

    op.create_table(
        "articles",
        sa.Column("article_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", _enum("content_type"), nullable=False, server_default="markdown"),
        sa.Column("rendered_html", sa.Text(), nullable=True),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("kb.categories.category_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _jsonb_list("tags"),
        sa.Column("meta_title", sa.String(70), nullable=True),
        sa.Column("meta_description", sa.String(160), nullable=True),
        _jsonb_list("meta_keywords"),
        sa.Column("status", _enum("article_status"), nullable=False, server_default="draft"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("visibility", _enum("article_visibility"), nullable=False, server_default="public"),
        _jsonb_list("allowed_roles"),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_name", sa.String(100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("previous_version_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("helpful_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("not_helpful_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("slug", "tenant_id", name="uq_kb_articles_slug_tenant"),
        schema="kb",
    )
    op.create_index("ix_kb_articles_category_id", "articles", ["category_id"], schema="kb")
    op.create_index("ix_kb_articles_author_id", "articles", ["author_id"], schema="kb")
    op.create_index("ix_kb_articles_status_published", "articles", ["status", "published_at"], schema="kb")
    op.execute(updated_at_trigger_sql("kb", "articles"))

    op.create_table(
        "article_versions",
        sa.Column("version_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _article_id(),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", _enum("content_type"), nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("article_id", "version_number", name="uq_kb_article_versions_number"),
        schema="kb",
    )
    op.create_index("ix_kb_article_versions_article_id", "article_versions", ["article_id"], schema="kb")

    op.create_table(
        "article_feedback",
        sa.Column("feedback_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        _article_id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("anonymous_id", sa.String(100), nullable=True),
        sa.Column("is_helpful", sa.Boolean(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema="kb",
    )
    op.create_index("ix_kb_article_feedback_article_id", "article_feedback", ["article_id"], schema="kb")

    op.create_table(
        "related_articles",
        _article_id(primary_key=True),
        _article_id("related_article_id", primary_key=True),
        sa.Column("relevance_score", sa.Numeric(3, 2), nullable=False, server_default="1.00"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("article_id <> related_article_id", name="ck_related_articles_not_self"),
        schema="kb",
    )


def downgrade() -> None:
    for table in ("related_articles", "article_feedback", "article_versions", "articles", "categories"):
        op.drop_table(table, schema="kb")
    bind = op.get_bind()
    for name, _values in reversed(_ENUMS):
        postgresql.ENUM(name=name, schema="kb").drop(bind, checkfirst=True)
