"""
Pydantic domain models for SnapMarket.

These models represent the data flowing through the drafting and
purchase pipelines:

LocalImage → (upload) → image_url
          → (inference) → InferenceResult(ListingSuggestion)
          → ListingCreate → Listing (Available) → Sold
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class ListingStatus(StrEnum):
    """Stored status of a listing. NULL in the database means AVAILABLE."""
    AVAILABLE = "available"
    SOLD = "sold"


class Condition(StrEnum):
    """Item condition as accepted by the marketplace."""
    NEW = "New"
    USED = "Used"


class Category(StrEnum):
    """Closed set of listing categories."""
    ELECTRONICS = "Electronics"
    VIDEO_GAMES = "Video Games & Consoles"
    HOME_APPLIANCES = "Home Appliances"
    FASHION = "Fashion"
    HEALTH_BEAUTY = "Health & Beauty"
    SPORTS = "Sports"


class NotificationType(StrEnum):
    PURCHASE = "purchase"
    SYSTEM = "system"


# ─── Listing State ────────────────────────────────────────────


@dataclass(frozen=True)
class Available:
    """Listing can be bought."""

    @property
    def is_sold(self) -> bool:
        return False


@dataclass(frozen=True)
class Sold:
    """Terminal state. Buyer and timestamp never change once set."""

    buyer_id: str
    sold_at: datetime

    @property
    def is_sold(self) -> bool:
        return True


ListingState = Available | Sold


# ─── Media ────────────────────────────────────────────────────


@dataclass(frozen=True)
class LocalImage:
    """One image held in memory, as selected by the user."""

    data: bytes
    filename: str
    content_type: str

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return "jpg"
        return self.filename.rsplit(".", 1)[-1].lower() or "jpg"

    @property
    def size(self) -> int:
        return len(self.data)


# ─── Inference ────────────────────────────────────────────────


class ListingSuggestion(BaseModel):
    """Listing attributes proposed by the vision model."""

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    category: str = Field(..., min_length=1)
    condition: Condition


class InferenceResult(BaseModel):
    """A parsed model response plus the names of fields that were defaulted."""

    suggestion: ListingSuggestion
    defaulted_fields: list[str] = Field(default_factory=list)

    @property
    def is_genuine(self) -> bool:
        """True when nothing had to be substituted."""
        return not self.defaulted_fields

    def to_payload(self) -> dict:
        """Body returned by the /generateListing function."""
        return {
            **self.suggestion.model_dump(mode="json"),
            "defaulted_fields": list(self.defaulted_fields),
        }


# ─── Listing Creation ─────────────────────────────────────────


class ListingCreate(BaseModel):
    """A confirmed draft, ready to be persisted as a listing."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    category: Category
    condition: Condition
    image_url: str = Field(..., min_length=1)

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class PurchaseReceipt(BaseModel):
    """Outcome of a successful buy."""

    purchase_id: str
    listing_id: str
    buyer_id: str
    sold_at: datetime
    seller_notified: bool = False
