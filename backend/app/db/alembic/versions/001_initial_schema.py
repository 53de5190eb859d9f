"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the trip plan tables:
- trip, trip_stop, itinerary_day, itinerary_item
- experience, booking (read-only from this service)
- trip_revision
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # trip table
    op.create_table(
        "trip",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), server_default="DRAFT", nullable=False),
        sa.Column("preferences", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("current_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_trip_user", "trip", ["user_id"])

    # trip_stop table
    op.create_table(
        "trip_stop",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("type", sa.String(16), server_default="CITY", nullable=False),
        sa.Column("locations", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("order", sa.Integer(), server_default="0", nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_trip_stop_trip", "trip_stop", ["trip_id", "order"])

    # itinerary_day table
    op.create_table(
        "itinerary_day",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("stop_id", sa.String(36), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("suggested_hosts", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["stop_id"], ["trip_stop.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_day_trip", "itinerary_day", ["trip_id", "day_index"])

    # experience table
    op.create_table(
        "experience",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("host_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
    )

    # itinerary_item table (place_id arrives in 002)
    op.create_table(
        "itinerary_item",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("day_id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(16), server_default="SIGHT", nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location_name", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("experience_id", sa.String(64), nullable=True),
        sa.Column("host_id", sa.String(64), nullable=True),
        sa.Column("order_index", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_by_ai", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.ForeignKeyConstraint(["day_id"], ["itinerary_day.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["experience_id"], ["experience.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_item_day", "itinerary_item", ["day_id", "order_index"])

    # booking table
    op.create_table(
        "booking",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("item_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["itinerary_item.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_booking_item", "booking", ["item_id", "created_at"])

    # trip_revision table
    op.create_table(
        "trip_revision",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("actor", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("job_id", sa.String(64), nullable=True),
        sa.Column("generation_id", sa.String(64), nullable=True),
        sa.Column("restored_from_version", sa.Integer(), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("trip_id", "version", name="uq_trip_revision_version"),
    )
    op.create_index("idx_trip_revision_trip", "trip_revision", ["trip_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("trip_revision")
    op.drop_table("booking")
    op.drop_table("itinerary_item")
    op.drop_table("experience")
    op.drop_table("itinerary_day")
    op.drop_table("trip_stop")
    op.drop_table("trip")
