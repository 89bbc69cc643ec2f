"""
Custom exception hierarchy for SnapMarket.

All application-specific exceptions inherit from SnapMarketError,
enabling catch-all handling at the API layer while allowing
fine-grained handling in business logic.
"""


class SnapMarketError(Exception):
    """Base exception for all SnapMarket application errors."""

    def __init__(self, message: str = "", details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# ─── Identity & Access ────────────────────────────────────────


class AuthRequiredError(SnapMarketError):
    """An action that needs an authenticated identity was attempted without one."""

    def __init__(self, message: str = "Please log in to continue.", **kwargs):
        super().__init__(message=message, **kwargs)


class PermissionDeniedError(SnapMarketError):
    """Access to a local media resource was refused by the operating system."""

    pass


class ForbiddenError(SnapMarketError):
    """The requested mutation is refused by a business rule."""

    pass


# ─── Media & Storage ──────────────────────────────────────────


class UnsupportedMediaError(SnapMarketError):
    """The selected file is not an image."""

    pass


class StorageError(SnapMarketError):
    """General error talking to durable object storage."""

    pass


class UploadError(StorageError):
    """Writing the object failed (network, storage, or name collision)."""

    pass


class UrlResolutionError(StorageError):
    """The written object could not be resolved to a public URL."""

    pass


# ─── Inference ────────────────────────────────────────────────


class InferenceError(SnapMarketError):
    """The generative model could not be reached or returned an HTTP error."""

    pass


class UnparseableResponseError(InferenceError):
    """The model's text did not contain a usable JSON object."""

    def __init__(self, message: str, raw=None, **kwargs):
        self.raw = raw
        super().__init__(message=message, **kwargs)


class InvalidAIResponseError(SnapMarketError):
    """An inference result was malformed or incomplete for drafting a listing."""

    pass


# ─── Listings & Purchases ─────────────────────────────────────


class ListingValidationError(SnapMarketError):
    """Required listing fields are missing or invalid."""

    pass


class ListingNotFoundError(SnapMarketError):
    """The referenced listing does not exist."""

    pass


class ListingAlreadySoldError(SnapMarketError):
    """A buy was attempted on a listing that has already been sold."""

    def __init__(self, listing_id: str, **kwargs):
        self.listing_id = listing_id
        super().__init__(message=f"Listing {listing_id} has already been sold", **kwargs)


class PurchaseFailedError(SnapMarketError):
    """Recording the purchase failed; nothing was written."""

    pass


class NotificationNotFoundError(SnapMarketError):
    """The referenced notification does not exist for this recipient."""

    pass
