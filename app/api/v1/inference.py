"""
The ``generateListing`` HTTP function.

Provides:
- POST /generateListing — body ``{"imageBase64": "..."}``

Mounted at the application root (not under /api/v1) so deployed clients
can call it exactly like the hosted function it replaces. It is
unauthenticated; callers are expected to be the draft flow or trusted
clients.
"""

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.inference.gemini_client import GeminiClient
from app.inference.service import generate_listing

router = APIRouter(tags=["Inference"])


async def get_gemini_client(settings: Settings = Depends(get_settings)) -> GeminiClient:
    return GeminiClient.from_settings(settings)


@router.post("/generateListing", summary="Draft listing fields from a product photo")
async def generate_listing_endpoint(
    payload: dict | None = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: GeminiClient = Depends(get_gemini_client),
):
    """
    Ask the vision model for title, description, price, category and condition.

    Answers 200 with either the draft (plus ``defaulted_fields``) or an
    ``{"error", "raw"}`` payload when the model's answer was unusable.
    """
    status_code, body = await generate_listing(payload, settings, client=client)
    return JSONResponse(status_code=status_code, content=body)
