"""
SQLAlchemy 2.0 ORM models for SnapMarket.

All models use the modern Mapped/mapped_column syntax. User identities
come from the external identity provider and are stored as opaque
strings (the token ``sub``); there is no local users table.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Unicode,
)
from sqlalchemy import (
    Enum as SAEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def new_uuid() -> uuid.UUID:
    """Generate a new UUID4."""
    return uuid.uuid4()


# ─── Listings ────────────────────────────────────────────────


class Listing(Base):
    """An item published for sale."""

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=new_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Unicode(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(Unicode(64), nullable=False)
    condition: Mapped[str] = mapped_column(
        SAEnum("New", "Used", name="listing_condition"),
        nullable=False,
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL on rows written before the status column existed; read as available
    status: Mapped[str | None] = mapped_column(
        SAEnum("available", "sold", name="listing_status"),
        default="available",
        nullable=True,
    )
    buyer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sold_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    # Relationships
    purchase: Mapped["Purchase | None"] = relationship(back_populates="listing")

    __table_args__ = (
        Index("ix_listings_owner_created", "owner_id", "created_at"),
        Index("ix_listings_status_created", "status", "created_at"),
        CheckConstraint("price > 0", name="ck_listings_price_positive"),
    )


# ─── Purchases ───────────────────────────────────────────────


class Purchase(Base):
    """Append-only record of a completed buy. At most one per listing."""

    __tablename__ = "purchases"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=new_uuid
    )
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    buyer_email: Mapped[str] = mapped_column(Unicode(320), default="", nullable=False)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("listings.id", ondelete="RESTRICT"),
        nullable=False,
    )
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    # Relationships
    listing: Mapped["Listing"] = relationship(back_populates="purchase")

    __table_args__ = (
        UniqueConstraint("listing_id", name="uq_purchases_listing_id"),
        Index("ix_purchases_buyer_time", "buyer_id", "purchased_at"),
    )


# ─── Notifications ───────────────────────────────────────────


class Notification(Base):
    """A message for one recipient, with read/unread state."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=new_uuid
    )
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        SAEnum("purchase", "system", name="notification_type"),
        default="system",
        nullable=False,
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_recipient_time", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_read", "recipient_id", "read"),
    )
