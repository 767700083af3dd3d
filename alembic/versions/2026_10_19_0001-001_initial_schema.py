"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Both tables as defined in app/models/database_models.py:
layouts, articles.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── layouts ───────────────────────────────────────────────────────────
    op.create_table(
        "layouts",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("layout_json", sa.JSON, nullable=False),
        sa.Column("custom_css", sa.Text, nullable=False, server_default=""),
        sa.Column("generated_html", sa.Text, nullable=False),
        sa.Column("generated_css", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── articles ──────────────────────────────────────────────────────────
    op.create_table(
        "articles",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("raw_content", sa.Text, nullable=True),
        sa.Column("slug", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.true(), index=True),
        sa.Column("published_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("styles", sa.JSON, nullable=True),
        sa.Column("layout_id", sa.Integer, sa.ForeignKey("layouts.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("meta_title", sa.String(255), nullable=True),
        sa.Column("meta_description", sa.Text, nullable=True),
        sa.Column("keywords", sa.JSON, nullable=True),
        sa.Column("og_image", sa.String(1024), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("articles")
    op.drop_table("layouts")
