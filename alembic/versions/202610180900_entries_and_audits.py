"""entries with embedded audit trail

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64)),
        sa.Column(
            "kind", sa.Enum("income", "expense", name="entrykind"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("note", sa.Text()),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column(
            "is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_entries_amount_positive"),
    )
    op.create_index(
        "ix_entries_owner_deleted_occurred",
        "entries",
        ["owner_id", "is_deleted", "occurred_at"],
    )
    op.create_index(
        "ix_entries_owner_kind_category",
        "entries",
        ["owner_id", "kind", "category"],
    )

    op.create_table(
        "entry_audits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "entry_id", sa.Integer(), sa.ForeignKey("entries.id"), nullable=False
        ),
        sa.Column(
            "action",
            sa.Enum("created", "updated", "deleted", name="auditaction"),
            nullable=False,
        ),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_entry_audits_entry", "entry_audits", ["entry_id", "id"])


def downgrade():
    op.drop_index("ix_entry_audits_entry", table_name="entry_audits")
    op.drop_table("entry_audits")
    op.drop_index("ix_entries_owner_kind_category", table_name="entries")
    op.drop_index("ix_entries_owner_deleted_occurred", table_name="entries")
    op.drop_table("entries")
