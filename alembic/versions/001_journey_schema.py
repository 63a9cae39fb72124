"""
Initial database schema: buses, route_stops, passengers, tickets, journeys.

Revision ID: 001
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    """Create initial tables."""
    # Buses table
    op.create_table(
        "buses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bus_id", sa.String(50), nullable=False),
        sa.Column("bus_number", sa.String(50), nullable=False),
        sa.Column("route_name", sa.String(255), nullable=False),
        sa.Column("conductor_name", sa.String(255), nullable=False),
        sa.Column("mobile_no", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_buses_bus_id", "buses", ["bus_id"], unique=True)
    op.create_index("ix_buses_mobile_no", "buses", ["mobile_no"])

    # Route stops table
    op.create_table(
        "route_stops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stop_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("depot_name", sa.String(255), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_route_stops_stop_id", "route_stops", ["stop_id"], unique=True)
    op.create_index("ix_route_stops_name", "route_stops", ["name"])
    op.create_index("ix_route_stops_depot_name", "route_stops", ["depot_name"])

    # Passengers table
    op.create_table(
        "passengers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("passenger_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_passengers_passenger_id", "passengers", ["passenger_id"], unique=True)
    op.create_index("ix_passengers_email", "passengers", ["email"], unique=True)

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ticket_id", sa.String(32), nullable=False),
        sa.Column("passenger_id", sa.String(32), nullable=False),
        sa.Column("pnr", sa.String(50), nullable=False),
        sa.Column("ticket_no", sa.String(50), nullable=False),
        sa.Column("pickup", sa.String(255), nullable=False),
        sa.Column("dropoff", sa.String(255), nullable=False),
        sa.Column("travel_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(20), nullable=True),
        sa.Column("end_time", sa.String(20), nullable=True),
        sa.Column("bus_id", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tickets_ticket_id", "tickets", ["ticket_id"], unique=True)
    op.create_index("ix_tickets_passenger_id", "tickets", ["passenger_id"])
    op.create_index("ix_tickets_travel_date", "tickets", ["travel_date"])

    # Journeys table (notifications live in a JSON column on the journey row)
    op.create_table(
        "journeys",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("journey_id", sa.String(32), nullable=False, unique=True),
        sa.Column("bus_id", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("direction", sa.String(20), nullable=False, server_default="forward"),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("start_time", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notifications", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_journeys_bus_status", "journeys", ["bus_id", "status"])

def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_journeys_bus_status", table_name="journeys")
    op.drop_table("journeys")
    op.drop_table("tickets")
    op.drop_table("passengers")
    op.drop_table("route_stops")
    op.drop_table("buses")
