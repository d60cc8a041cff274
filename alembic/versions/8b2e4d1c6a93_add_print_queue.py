"""add label print queue

Revision ID: 8b2e4d1c6a93
Revises: 3f1c9a2b7d40
Create Date: 2026-10-20 14:03:51.402117

"""

from alembic import op
import sqlalchemy as sa

revision = "8b2e4d1c6a93"
down_revision = "3f1c9a2b7d40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "print_queue",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("module_id", sa.UUID(), nullable=False),
        sa.Column("record_id", sa.UUID(), nullable=False),
        sa.Column("module_name", sa.String(length=120), nullable=False),
        sa.Column("record_name", sa.String(length=500), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "printed", name="printstatus"),
            nullable=False,
        ),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("printed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["record_id"], ["module_records.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_print_queue_status", "print_queue", ["status"])


def downgrade() -> None:
    op.drop_index("ix_print_queue_status", table_name="print_queue")
    op.drop_table("print_queue")
    sa.Enum(name="printstatus").drop(op.get_bind(), checkfirst=True)
