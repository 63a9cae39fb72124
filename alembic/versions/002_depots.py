"""
Depot registry.

Revision ID: 002
Revises: 001
"""
from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "depots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("depot_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_depots_depot_id", "depots", ["depot_id"], unique=True)
    op.create_index("ix_depots_name", "depots", ["name"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_depots_name", table_name="depots")
    op.drop_index("ix_depots_depot_id", table_name="depots")
    op.drop_table("depots")
