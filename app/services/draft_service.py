"""
Draft assembly: one image in, one confirmable listing draft out.

Pipeline, strictly sequential:
    image → upload (storage) → inference (base64 of the same bytes)
          → validated suggestion → optional category override → confirm

A new ``start()`` always discards the previous draft. Inference is only
attempted after the upload succeeded, so a draft never carries a
suggestion without an image URL.
"""

import base64
import logging
from dataclasses import dataclass, field

import httpx
from pydantic import ValidationError

from app.config import Settings
from app.core.exceptions import (
    InferenceError,
    InvalidAIResponseError,
    ListingValidationError,
)
from app.core.interfaces import IInferenceGateway, IObjectStorage
from app.core.models import (
    Category,
    Condition,
    ListingCreate,
    ListingSuggestion,
    LocalImage,
)
from app.inference.gemini_client import GeminiClient
from app.inference.service import generate_listing
from app.storage.object_storage import ObjectStorageClient

logger = logging.getLogger(__name__)

_REQUIRED_TEXT_FIELDS = ("title", "description", "category", "condition")

CATEGORY_VALUES = frozenset(c.value for c in Category)


def validate_suggestion(payload) -> ListingSuggestion:
    """
    Check an inference response body before it is shown as a draft.

    Raises:
        InvalidAIResponseError: an ``{"error": ...}`` body, a missing or empty
            text field, a non-numeric price, or an unknown condition.
    """
    if not isinstance(payload, dict):
        raise InvalidAIResponseError("Invalid AI response")

    if payload.get("error"):
        raise InvalidAIResponseError(
            "Invalid AI response",
            details={"error": payload["error"]},
        )

    missing = [
        name for name in _REQUIRED_TEXT_FIELDS
        if not isinstance(payload.get(name), str) or not payload[name].strip()
    ]
    price = payload.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        missing.append("price")

    if missing:
        raise InvalidAIResponseError(
            "Invalid AI response",
            details={"fields": missing},
        )

    try:
        return ListingSuggestion(
            title=payload["title"].strip(),
            description=payload["description"].strip(),
            price=float(price),
            category=payload["category"].strip(),
            condition=Condition(payload["condition"]),
        )
    except (ValueError, OverflowError, ValidationError) as e:
        raise InvalidAIResponseError("Invalid AI response", details={"reason": str(e)}) from e


@dataclass
class DraftListing:
    """Transient listing being assembled on the seller's side."""

    image: LocalImage | None = None
    image_url: str | None = None
    suggestion: ListingSuggestion | None = None
    category: str | None = None
    defaulted_fields: list[str] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return bool(
            self.image_url
            and self.suggestion is not None
            and self.suggestion.price > 0
            and self.category in CATEGORY_VALUES
        )

    def to_dict(self) -> dict:
        suggestion = None
        if self.suggestion is not None:
            suggestion = {
                **self.suggestion.model_dump(mode="json"),
                "category": self.category,
            }
        return {
            "image_url": self.image_url,
            "suggestion": suggestion,
            "defaulted_fields": list(self.defaulted_fields),
            "ready": self.is_ready,
        }


class DraftAssembler:
    """
    Builds a draft from a single image.

    Usage:
        assembler = DraftAssembler(storage, inference)
        await assembler.start(image)
        assembler.select_category("Sports")
        payload = assembler.confirm()
    """

    def __init__(self, storage: IObjectStorage, inference: IInferenceGateway):
        self._storage = storage
        self._inference = inference
        self._draft = DraftListing()

    @property
    def draft(self) -> DraftListing:
        return self._draft

    @property
    def is_ready(self) -> bool:
        return self._draft.is_ready

    def reset(self) -> None:
        self._draft = DraftListing()

    async def start(self, image: LocalImage) -> DraftListing:
        """
        Upload the image, then ask for a suggestion.

        Raises:
            UploadError / UrlResolutionError: the image could not be stored;
                no inference is attempted.
            InvalidAIResponseError: the suggestion is unusable or the inference
                function was unreachable. The uploaded image URL is kept.
        """
        self.reset()
        self._draft.image = image

        self._draft.image_url = await self._storage.upload_image(image)

        encoded = base64.b64encode(image.data).decode("ascii")
        try:
            body = await self._inference.generate(encoded)
        except InferenceError as e:
            logger.warning(f"Inference unreachable for draft: {e.message}")
            raise InvalidAIResponseError(
                "Could not generate listing details. Please choose the image again."
            ) from e

        suggestion = validate_suggestion(body)
        self._draft.suggestion = suggestion
        self._draft.category = suggestion.category
        self._draft.defaulted_fields = [
            str(name) for name in body.get("defaulted_fields") or []
        ]
        logger.info(
            f"Draft ready for '{suggestion.title}' "
            f"(defaulted: {self._draft.defaulted_fields or 'none'})"
        )
        return self._draft

    def select_category(self, value: str) -> None:
        """Override the suggested category with one from the closed set."""
        if value not in CATEGORY_VALUES:
            raise ListingValidationError(
                f"Unknown category '{value}'",
                details={"allowed": [c.value for c in Category]},
            )
        self._draft.category = value

    def confirm(self) -> ListingCreate:
        """
        Produce the payload to persist.

        Raises:
            ListingValidationError: the draft is incomplete or its category is
                not one of the marketplace categories.
        """
        draft = self._draft
        if not draft.is_ready:
            raise ListingValidationError("Please fill all fields")

        try:
            return ListingCreate(
                title=draft.suggestion.title,
                description=draft.suggestion.description,
                price=draft.suggestion.price,
                category=draft.category,
                condition=draft.suggestion.condition,
                image_url=draft.image_url,
            )
        except ValidationError as e:
            raise ListingValidationError(
                "Please fill all fields",
                details={"errors": [err["loc"][0] for err in e.errors()]},
            ) from e


# ─── Inference Gateways ───────────────────────────────────────


class LocalInferenceGateway(IInferenceGateway):
    """Runs the generateListing function in-process."""

    def __init__(self, settings: Settings, client: GeminiClient | None = None):
        self._settings = settings
        self._client = client

    async def generate(self, image_base64: str) -> dict:
        status, body = await generate_listing(
            {"imageBase64": image_base64}, self._settings, client=self._client
        )
        if status >= 500:
            raise InferenceError(body.get("error", "Inference failed"), details={"status": status})
        return body


class HttpInferenceGateway(IInferenceGateway):
    """Posts to a deployed generateListing function."""

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def generate(self, image_base64: str) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json={"imageBase64": image_base64})
            body = response.json()
        except httpx.HTTPError as e:
            raise InferenceError(f"Inference function unreachable: {type(e).__name__}") from e
        except ValueError as e:
            raise InferenceError("Inference function returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise InferenceError("Inference function returned an unexpected body")
        return body


def build_assembler(settings: Settings) -> DraftAssembler:
    """Wire an assembler to the configured storage and inference backends."""
    if settings.inference_function_url:
        gateway: IInferenceGateway = HttpInferenceGateway(
            settings.inference_function_url,
            timeout=settings.gemini_timeout_seconds,
        )
    else:
        gateway = LocalInferenceGateway(settings)
    return DraftAssembler(ObjectStorageClient.from_settings(settings), gateway)
