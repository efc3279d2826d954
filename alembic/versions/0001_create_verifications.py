"""create verifications table

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "verifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("transaction_id", sa.String(length=40), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("photo_path", sa.String(length=255), nullable=True),
        sa.Column("photo_data", sa.Text(), nullable=True),
        sa.Column("photo_content_type", sa.String(length=50), nullable=True),
        sa.Column("photo_size", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("amount", sa.String(length=32), nullable=False),
        sa.Column("recipient_name", sa.String(length=255), nullable=False),
        sa.Column("recipient_upi", sa.String(length=255), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("transaction_id"),
        sa.CheckConstraint("photo_size > 0", name="ck_verifications_photo_size"),
        sa.CheckConstraint(
            "photo_path IS NOT NULL OR photo_data IS NOT NULL",
            name="ck_verifications_photo_ref",
        ),
    )
    op.create_index("idx_verifications_created_at", "verifications", ["created_at"])
    op.create_index("idx_verifications_status", "verifications", ["status"])


def downgrade() -> None:
    op.drop_index("idx_verifications_status", table_name="verifications")
    op.drop_index("idx_verifications_created_at", table_name="verifications")
    op.drop_table("verifications")
