"""
AI-assisted draft endpoint.

Provides:
- POST /api/v1/drafts — multipart field ``image``; uploads the photo,
  asks for a suggestion and returns the draft.

The draft is not persisted. The client edits it and publishes it with
POST /api/v1/listings. Each call counts against the daily AI draft quota.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from app.config import Settings, get_settings
from app.core.session import Identity
from app.media.ingestion import image_from_upload
from app.middleware.auth_middleware import get_current_identity
from app.middleware.rate_limiter import RateLimitInfo, add_rate_limit_headers, check_draft_quota
from app.services.draft_service import DraftAssembler, build_assembler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drafts", tags=["Drafts"])


async def get_draft_assembler(settings: Settings = Depends(get_settings)) -> DraftAssembler:
    return build_assembler(settings)


@router.post("", summary="Create a listing draft from a photo")
async def create_draft(
    response: Response,
    image: UploadFile | None = File(default=None),
    category: str | None = Form(default=None),
    identity: Identity = Depends(get_current_identity),
    rate_info: RateLimitInfo = Depends(check_draft_quota),
    assembler: DraftAssembler = Depends(get_draft_assembler),
):
    """
    Build a draft from one image.

    ``category`` optionally overrides the suggested category.
    """
    data = await image.read() if image is not None else b""
    local_image = image_from_upload(
        image.filename if image is not None else None,
        image.content_type if image is not None else None,
        data,
    )
    if local_image is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No image selected",
        )

    draft = await assembler.start(local_image)
    if category:
        assembler.select_category(category)

    logger.info(f"Draft created for {identity.user_id}: ready={draft.is_ready}")
    add_rate_limit_headers(response, rate_info)
    return draft.to_dict()
