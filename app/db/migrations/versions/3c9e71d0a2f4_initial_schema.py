"""Initial schema: listings, purchases, notifications

Creates the SnapMarket marketplace schema.

Tables:
    listings       — Items published for sale; status NULL is read as available
    purchases      — Append-only buy records, at most one per listing
    notifications  — Per-recipient messages with read state

Users live in the external identity provider; owner, buyer and recipient
columns hold the token subject as an opaque string.

Revision ID: 3c9e71d0a2f4
Revises:
Create Date: 2026-10-12
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e71d0a2f4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# ─── Enum Types ─────────────────────────────────────────────

listing_condition = sa.Enum("New", "Used", name="listing_condition")
listing_status = sa.Enum("available", "sold", name="listing_status")
notification_type = sa.Enum("purchase", "system", name="notification_type")


def upgrade() -> None:
    # Enum types are emitted by create_table through the before_create event

    # ─── listings ────────────────────────────────────────────
    op.create_table(
        "listings",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Unicode(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("category", sa.Unicode(64), nullable=False),
        sa.Column("condition", listing_condition, nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("status", listing_status, nullable=True, server_default="available"),
        sa.Column("buyer_id", sa.String(64), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("price > 0", name="ck_listings_price_positive"),
    )
    op.create_index("ix_listings_owner_created", "listings", ["owner_id", "created_at"])
    op.create_index("ix_listings_status_created", "listings", ["status", "created_at"])

    # ─── purchases ───────────────────────────────────────────
    op.create_table(
        "purchases",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("buyer_id", sa.String(64), nullable=False),
        sa.Column("buyer_email", sa.Unicode(320), nullable=False, server_default=""),
        sa.Column(
            "listing_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "purchased_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("listing_id", name="uq_purchases_listing_id"),
    )
    op.create_index("ix_purchases_buyer_time", "purchases", ["buyer_id", "purchased_at"])

    # ─── notifications ───────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("recipient_id", sa.String(64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", notification_type, nullable=False, server_default="system"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_notifications_recipient_time", "notifications", ["recipient_id", "created_at"]
    )
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_recipient_read", table_name="notifications")
    op.drop_index("ix_notifications_recipient_time", table_name="notifications")
    op.drop_index("ix_purchases_buyer_time", table_name="purchases")
    op.drop_index("ix_listings_status_created", table_name="listings")
    op.drop_index("ix_listings_owner_created", table_name="listings")

    # Drop tables in reverse dependency order
    op.drop_table("notifications")
    op.drop_table("purchases")
    op.drop_table("listings")

    notification_type.drop(op.get_bind(), checkfirst=True)
    listing_status.drop(op.get_bind(), checkfirst=True)
    listing_condition.drop(op.get_bind(), checkfirst=True)
