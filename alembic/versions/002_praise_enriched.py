"""structured praise cards on moments

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("moments", sa.Column("praise_enriched_json", sa.JSON()))


def downgrade() -> None:
    with op.batch_alter_table("moments") as batch:
        batch.drop_column("praise_enriched_json")
