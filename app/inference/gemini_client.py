"""
Gemini ``generateContent`` client.

Sends the listing prompt plus one inline JPEG and returns the raw
response body. Interpretation of the answer is left to the parser.
"""

import logging

import httpx

from app.config import Settings
from app.core.exceptions import InferenceError
from app.inference.prompts import LISTING_PROMPT

logger = logging.getLogger(__name__)


def extract_text(body: dict) -> str:
    """First text part of the first candidate, or an empty string."""
    try:
        text = body["candidates"][0]["content"]["parts"][0].get("text")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return text if isinstance(text, str) else ""


class GeminiClient:
    """
    Thin async wrapper around the Gemini REST API.

    Usage:
        client = GeminiClient.from_settings(get_settings())
        body = await client.generate_content(image_base64)
        text = extract_text(body)
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        prompt: str = LISTING_PROMPT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._prompt = prompt
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GeminiClient":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.gemini_timeout_seconds,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def build_request_body(self, image_base64: str) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": self._prompt},
                        {
                            "inlineData": {
                                "mimeType": "image/jpeg",
                                "data": image_base64,
                            }
                        },
                    ]
                }
            ]
        }

    async def generate_content(self, image_base64: str) -> dict:
        """
        Ask the model to describe the image.

        HTTP error statuses are not raised: the body is returned as-is and
        simply yields no candidate text.

        Raises:
            InferenceError: the model could not be reached or answered with
                something that is not JSON.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": self._api_key},
                    json=self.build_request_body(image_base64),
                )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {type(e).__name__}")
            raise InferenceError("Gemini request failed") from e

        if not response.is_success:
            logger.warning(f"Gemini returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise InferenceError(
                "Gemini request failed",
                details={"status": response.status_code},
            ) from e

        if not isinstance(body, dict):
            raise InferenceError("Gemini request failed", details={"status": response.status_code})
        return body
