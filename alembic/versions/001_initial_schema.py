"""Initial schema - patch_evaluations, investigations.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "patch_evaluations",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("patch_text", sa.Text(), nullable=False),
        sa.Column("patch_hash", sa.String(64), nullable=False),
        sa.Column("diff", postgresql.JSONB(), nullable=True),
        sa.Column("reasons", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("probe_results_before", postgresql.JSONB(), nullable=True),
        sa.Column("probe_results_after", postgresql.JSONB(), nullable=True),
        sa.Column("investigation_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("evaluation_meta", postgresql.JSONB(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_patch_evaluations_status", "patch_evaluations", ["status"])
    op.create_index("ix_patch_evaluations_patch_hash", "patch_evaluations", ["patch_hash"])

    op.create_table(
        "investigations",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("trigger", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("run_meta", postgresql.JSONB(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_investigations_trigger", "investigations", ["trigger"])


def downgrade() -> None:
    op.drop_index("ix_investigations_trigger", table_name="investigations")
    op.drop_table("investigations")
    op.drop_index("ix_patch_evaluations_patch_hash", table_name="patch_evaluations")
    op.drop_index("ix_patch_evaluations_status", table_name="patch_evaluations")
    op.drop_table("patch_evaluations")
