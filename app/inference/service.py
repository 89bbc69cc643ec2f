"""
The ``generateListing`` function: image in, listing draft out.

Returns ``(status_code, body)`` so the same logic backs the HTTP route
and the in-process inference gateway.
"""

import logging

from app.config import Settings
from app.core.exceptions import InferenceError, UnparseableResponseError
from app.inference.gemini_client import GeminiClient, extract_text
from app.inference.parser import EMPTY_RESPONSE, parse_listing_response

logger = logging.getLogger(__name__)


async def generate_listing(
    payload: dict | None,
    settings: Settings,
    client: GeminiClient | None = None,
) -> tuple[int, dict]:
    """
    Produce a listing draft for ``payload["imageBase64"]``.

    Status codes:
        400 – imageBase64 missing
        500 – no API key, or the model could not be reached
        200 – either the repaired draft or an ``{"error", "raw"}`` payload
    """
    image_base64 = (payload or {}).get("imageBase64")
    if not image_base64 or not isinstance(image_base64, str):
        return 400, {"error": "Missing imageBase64 in request"}

    logger.info(f"Received base64 image ({len(image_base64)} chars)")

    if not settings.gemini_configured:
        return 500, {"error": "Gemini API key not configured"}

    client = client or GeminiClient.from_settings(settings)
    try:
        body = await client.generate_content(image_base64)
    except InferenceError:
        return 500, {"error": "Gemini request failed"}

    text = extract_text(body)
    if not text:
        logger.error("Empty AI response")
        return 200, {"error": EMPTY_RESPONSE, "raw": body}

    try:
        result = parse_listing_response(text)
    except UnparseableResponseError as e:
        return 200, {"error": e.message, "raw": e.raw}

    return 200, result.to_payload()
