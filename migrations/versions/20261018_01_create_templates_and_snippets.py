"""create templates and snippets tables

Revision ID: 20261018_01
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None


def _document_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "templates",
        *_document_columns(),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("tags", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("snippets", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("is_visual_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_templates_tenant_id", "templates", ["tenant_id"])
    op.create_index("ix_templates_tenant_name", "templates", ["tenant_id", "name"])

    op.create_table(
        "snippets",
        *_document_columns(),
        sa.Column("parameters", sa.Text(), nullable=False, server_default="[]"),
    )
    op.create_index("ix_snippets_tenant_id", "snippets", ["tenant_id"])
    op.create_index("ix_snippets_tenant_name", "snippets", ["tenant_id", "name"])


def downgrade() -> None:
    op.drop_index("ix_snippets_tenant_name", table_name="snippets")
    op.drop_index("ix_snippets_tenant_id", table_name="snippets")
    op.drop_table("snippets")
    op.drop_index("ix_templates_tenant_name", table_name="templates")
    op.drop_index("ix_templates_tenant_id", table_name="templates")
    op.drop_table("templates")
