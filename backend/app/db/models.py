"""SQLAlchemy ORM models for trips, their plans and revision history."""

import datetime as dt
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Trip(Base):
    """Trip table - owner, header fields and the current plan version."""

    __tablename__ = "trip"
    __table_args__ = (Index("idx_trip_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT")
    preferences: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    stops: Mapped[list["TripStop"]] = relationship(
        "TripStop", back_populates="trip", order_by="TripStop.order"
    )
    revisions: Mapped[list["TripRevision"]] = relationship("TripRevision", back_populates="trip")


class TripStop(Base):
    """Trip stop table - a city, place or region visited in order."""

    __tablename__ = "trip_stop"
    __table_args__ = (Index("idx_trip_stop_trip", "trip_id", "order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trip.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="CITY")
    locations: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="stops")
    days: Mapped[list["ItineraryDay"]] = relationship(
        "ItineraryDay", back_populates="stop", order_by="ItineraryDay.day_index"
    )


class ItineraryDay(Base):
    """Itinerary day table - one day of the trip, attached to its stop."""

    __tablename__ = "itinerary_day"
    __table_args__ = (Index("idx_day_trip", "trip_id", "day_index"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trip.id", ondelete="CASCADE"), nullable=False
    )
    stop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trip_stop.id", ondelete="CASCADE"), nullable=False
    )
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_hosts: Mapped[list[Any] | None] = mapped_column(JsonType, nullable=True)

    # Relationships
    stop: Mapped["TripStop"] = relationship("TripStop", back_populates="days")
    items: Mapped[list["ItineraryItem"]] = relationship(
        "ItineraryItem", back_populates="day", order_by="ItineraryItem.order_index"
    )


class ItineraryItem(Base):
    """Itinerary item table - an activity, meal, transport leg, etc."""

    __tablename__ = "itinerary_item"
    __table_args__ = (Index("idx_item_day", "day_id", "order_index"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    day_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("itinerary_day.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="SIGHT")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    place_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    experience_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("experience.id", ondelete="SET NULL"), nullable=True
    )
    host_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by_ai: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    day: Mapped["ItineraryDay"] = relationship("ItineraryDay", back_populates="items")


class Experience(Base):
    """Experience table - host-run activities. Read-only from this service."""

    __tablename__ = "experience"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    host_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)


class Booking(Base):
    """Booking table - snapshots read for item status. Never written here."""

    __tablename__ = "booking"
    __table_args__ = (Index("idx_booking_item", "item_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    item_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("itinerary_item.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class TripRevision(Base):
    """Trip revision table - immutable record of every accepted plan write."""

    __tablename__ = "trip_revision"
    __table_args__ = (
        UniqueConstraint("trip_id", "version", name="uq_trip_revision_version"),
        Index("idx_trip_revision_trip", "trip_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trip.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    actor: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    generation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    restored_from_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="revisions")
