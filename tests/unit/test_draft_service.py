"""
Tests for the draft assembler and inference gateways.

Storage and inference are replaced with AsyncMock-backed fakes so the
ordering rules (upload before inference, reset on restart) are visible.
"""

import base64
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.core.exceptions import (
    InferenceError,
    InvalidAIResponseError,
    ListingValidationError,
    UploadError,
)
from app.core.interfaces import IInferenceGateway, IObjectStorage
from app.core.models import Category, Condition
from app.services.draft_service import (
    DraftAssembler,
    HttpInferenceGateway,
    LocalInferenceGateway,
    build_assembler,
    validate_suggestion,
)

IMAGE_URL = "https://storage.test/storage/v1/object/public/product-images/1-abc.jpg"

SUGGESTION = {
    "title": "Nike Air Zoom Pegasus",
    "description": "Running shoes, size 10, lightly worn",
    "price": 60,
    "category": "Sports",
    "condition": "Used",
    "defaulted_fields": [],
}


def _storage(url: str = IMAGE_URL, error: Exception | None = None) -> IObjectStorage:
    storage = AsyncMock(spec=IObjectStorage)
    if error is not None:
        storage.upload_image.side_effect = error
    else:
        storage.upload_image.return_value = url
    return storage


def _inference(body: dict | None = None, error: Exception | None = None) -> IInferenceGateway:
    gateway = AsyncMock(spec=IInferenceGateway)
    if error is not None:
        gateway.generate.side_effect = error
    else:
        gateway.generate.return_value = body if body is not None else dict(SUGGESTION)
    return gateway


class TestValidateSuggestion:

    def test_valid_payload(self):
        suggestion = validate_suggestion(SUGGESTION)
        assert suggestion.title == "Nike Air Zoom Pegasus"
        assert suggestion.condition == Condition.USED

    def test_error_payload_rejected(self):
        with pytest.raises(InvalidAIResponseError):
            validate_suggestion({"error": "No JSON found", "raw": "..."})

    @pytest.mark.parametrize("field", ["title", "description", "category", "condition"])
    def test_missing_text_field_rejected(self, field):
        payload = {k: v for k, v in SUGGESTION.items() if k != field}
        with pytest.raises(InvalidAIResponseError) as exc_info:
            validate_suggestion(payload)
        assert field in exc_info.value.details["fields"]

    @pytest.mark.parametrize("price", ["60", None, True])
    def test_non_numeric_price_rejected(self, price):
        with pytest.raises(InvalidAIResponseError):
            validate_suggestion({**SUGGESTION, "price": price})

    @pytest.mark.parametrize("price", [10**400, float("inf")])
    def test_out_of_range_price_rejected(self, price):
        with pytest.raises(InvalidAIResponseError):
            validate_suggestion({**SUGGESTION, "price": price})

    def test_unknown_condition_rejected(self):
        with pytest.raises(InvalidAIResponseError):
            validate_suggestion({**SUGGESTION, "condition": "Refurbished"})

    def test_non_dict_rejected(self):
        with pytest.raises(InvalidAIResponseError):
            validate_suggestion(["not", "a", "dict"])


class TestDraftAssemblerStart:

    async def test_upload_then_inference_with_same_bytes(self, sample_image):
        storage, inference = _storage(), _inference()
        assembler = DraftAssembler(storage, inference)

        draft = await assembler.start(sample_image)

        storage.upload_image.assert_awaited_once_with(sample_image)
        inference.generate.assert_awaited_once_with(
            base64.b64encode(sample_image.data).decode("ascii")
        )
        assert draft.image_url == IMAGE_URL
        assert draft.suggestion.title == "Nike Air Zoom Pegasus"
        assert draft.category == "Sports"
        assert draft.is_ready

    async def test_upload_failure_skips_inference(self, sample_image):
        inference = _inference()
        assembler = DraftAssembler(_storage(error=UploadError("offline")), inference)

        with pytest.raises(UploadError):
            await assembler.start(sample_image)

        inference.generate.assert_not_awaited()
        assert assembler.draft.image_url is None
        assert assembler.draft.suggestion is None

    async def test_invalid_ai_response_keeps_image_url_only(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference({"error": "No JSON found", "raw": "?"}))

        with pytest.raises(InvalidAIResponseError):
            await assembler.start(sample_image)

        assert assembler.draft.image_url == IMAGE_URL
        assert assembler.draft.suggestion is None
        assert not assembler.is_ready

    async def test_unreachable_inference_is_invalid_ai_response(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference(error=InferenceError("down")))
        with pytest.raises(InvalidAIResponseError, match="choose the image again"):
            await assembler.start(sample_image)

    async def test_restart_discards_previous_draft(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference())
        await assembler.start(sample_image)
        assembler.select_category("Fashion")

        assembler._inference.generate.return_value = {"error": "Invalid JSON format", "raw": "{"}
        with pytest.raises(InvalidAIResponseError):
            await assembler.start(sample_image)

        assert assembler.draft.suggestion is None
        assert assembler.draft.category is None

    async def test_defaulted_fields_reported(self, sample_image):
        body = {**SUGGESTION, "price": 25.0, "defaulted_fields": ["price"]}
        draft = await DraftAssembler(_storage(), _inference(body)).start(sample_image)
        assert draft.defaulted_fields == ["price"]
        assert draft.to_dict()["defaulted_fields"] == ["price"]


class TestDraftAssemblerConfirm:

    async def test_confirm_uses_selected_category(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference())
        await assembler.start(sample_image)
        assembler.select_category(Category.FASHION.value)

        payload = assembler.confirm()

        assert payload.category == Category.FASHION
        assert payload.image_url == IMAGE_URL
        assert payload.price == 60.0

    def test_confirm_without_start_fails(self):
        assembler = DraftAssembler(_storage(), _inference())
        with pytest.raises(ListingValidationError, match="fill all fields"):
            assembler.confirm()

    async def test_unknown_category_rejected(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference())
        await assembler.start(sample_image)
        with pytest.raises(ListingValidationError):
            assembler.select_category("Toys")

    async def test_suggested_category_outside_set_blocks_confirm(self, sample_image):
        assembler = DraftAssembler(_storage(), _inference({**SUGGESTION, "category": "Toys"}))
        await assembler.start(sample_image)
        assert assembler.is_ready is False
        assert assembler.draft.to_dict()["ready"] is False
        with pytest.raises(ListingValidationError):
            assembler.confirm()

        assembler.select_category("Sports")
        assert assembler.is_ready is True
        assert assembler.confirm().category == Category.SPORTS


class TestLocalInferenceGateway:

    async def test_returns_body_on_200(self, settings):
        with patch(
            "app.services.draft_service.generate_listing",
            AsyncMock(return_value=(200, {"error": "No JSON found", "raw": "x"})),
        ):
            body = await LocalInferenceGateway(settings).generate("QUJD")
        assert body["error"] == "No JSON found"

    async def test_server_error_raises(self, settings):
        with patch(
            "app.services.draft_service.generate_listing",
            AsyncMock(return_value=(500, {"error": "Gemini request failed"})),
        ):
            with pytest.raises(InferenceError, match="Gemini request failed"):
                await LocalInferenceGateway(settings).generate("QUJD")


class TestHttpInferenceGateway:

    async def test_posts_image_base64(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SUGGESTION)

        gateway = HttpInferenceGateway(
            "https://functions.test/generateListing",
            transport=httpx.MockTransport(handler),
        )
        body = await gateway.generate("QUJD")

        assert body["title"] == SUGGESTION["title"]
        assert json.loads(seen[0].content) == {"imageBase64": "QUJD"}

    async def test_unreachable_raises(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        gateway = HttpInferenceGateway("https://functions.test/x", transport=httpx.MockTransport(handler))
        with pytest.raises(InferenceError):
            await gateway.generate("QUJD")


class TestBuildAssembler:

    def test_remote_gateway_when_function_url_set(self, settings):
        remote = settings.model_copy(update={"inference_function_url": "https://functions.test/g"})
        assert isinstance(build_assembler(remote)._inference, HttpInferenceGateway)

    def test_local_gateway_by_default(self, settings):
        assert isinstance(build_assembler(settings)._inference, LocalInferenceGateway)
