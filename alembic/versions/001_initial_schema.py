"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "moments",
        sa.Column("client_id", sa.String(36), primary_key=True),
        sa.Column("server_id", sa.String(64)),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("happened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("time_ago", sa.Integer()),
        sa.Column("praise", sa.Text()),
        sa.Column("action", sa.String(255)),
        sa.Column("tags_json", sa.JSON(), nullable=False),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("offline_praise", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_synced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sync_error", sa.Text()),
    )
    op.create_index("ix_moments_server_id", "moments", ["server_id"])
    op.create_index("ix_moments_is_synced", "moments", ["is_synced"])
    op.create_table(
        "app_state",
        sa.Column("key", sa.String(128), primary_key=True),
        sa.Column("value", sa.Text()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("app_state")
    op.drop_index("ix_moments_is_synced", table_name="moments")
    op.drop_index("ix_moments_server_id", table_name="moments")
    op.drop_table("moments")
