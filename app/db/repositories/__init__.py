"""
Database repository layer for SnapMarket.

All repositories inherit from BaseRepository and provide owner-scoped
CRUD operations plus entity-specific query methods.

Usage:
    from app.db.repositories import ListingRepository, PurchaseRepository

    listing_repo = ListingRepository(session)
    listings = await listing_repo.list_available(search="camera")
"""

from app.db.repositories.base_repo import BaseRepository
from app.db.repositories.listing_repo import ListingRepository
from app.db.repositories.notification_repo import NotificationRepository
from app.db.repositories.purchase_repo import PurchaseRepository

__all__ = [
    "BaseRepository",
    "ListingRepository",
    "NotificationRepository",
    "PurchaseRepository",
]
