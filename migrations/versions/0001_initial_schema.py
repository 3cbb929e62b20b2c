"""Initial schema: issues, tags, issue_tags

Revision ID: 0001
Revises: None
Create Date: 2026-10-17 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    """Check whether a table already exists in the database."""
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so the migration also runs against a DB created by create_all()

    if not _table_exists("issues"):
        op.create_table(
            "issues",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("content", sa.String(), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("creation_date", sa.DateTime(), nullable=False),
            sa.Column("modification_date", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_issues_creation_date", "issues", ["creation_date"])
        op.create_index("ix_issues_modification_date", "issues", ["modification_date"])

    if not _table_exists("tags"):
        op.create_table(
            "tags",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
        )

    if not _table_exists("issue_tags"):
        op.create_table(
            "issue_tags",
            sa.Column(
                "issue_id",
                sa.String(),
                sa.ForeignKey("issues.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column(
                "tag_id",
                sa.String(),
                sa.ForeignKey("tags.id", ondelete="CASCADE"),
                primary_key=True,
            ),
        )


def downgrade() -> None:
    # Link table first: it references both others
    op.drop_table("issue_tags")
    op.drop_table("tags")
    op.drop_table("issues")
