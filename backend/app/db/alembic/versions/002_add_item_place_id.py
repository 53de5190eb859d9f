"""Add place_id to itinerary_item.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Writers detect this column at runtime, so databases still on 001 keep
accepting plan writes without item place ids.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add place_id column to itinerary_item table."""
    op.add_column("itinerary_item", sa.Column("place_id", sa.Text(), nullable=True))


def downgrade() -> None:
    """Remove place_id column from itinerary_item table."""
    op.drop_column("itinerary_item", "place_id")
