"""
ReelRank API — Feed routes.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from reelrank.api.deps import get_feed_service, get_viewer_id
from reelrank.core.config import get_settings
from reelrank.schemas.schemas import FeedResponse
from reelrank.services.feed.feed_service import FeedRankingError, FeedService, FeedTimeoutError

router = APIRouter(prefix="/feed", tags=["Feed"])
settings = get_settings()


def _split_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part for part in raw.split(",") if part.strip()]


@router.get("/personalized", response_model=FeedResponse)
async def personalized_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.feed_default_page_size, ge=1, le=settings.feed_max_page_size),
    exclude_ids: Optional[str] = Query(None, description="Comma-separated video ids already seen"),
    viewer_id: Optional[uuid.UUID] = Depends(get_viewer_id),
    service: FeedService = Depends(get_feed_service),
):
    """Ranked, diversity-capped feed for the viewer (newest videos when anonymous)."""
    try:
        return await service.personalized_feed(viewer_id, page, limit, _split_ids(exclude_ids))
    except FeedTimeoutError:
        raise HTTPException(status_code=504, detail="Feed ranking timed out")
    except FeedRankingError:
        raise HTTPException(status_code=500, detail="Failed to rank feed")


@router.get("/trending", response_model=FeedResponse)
async def trending_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.feed_default_page_size, ge=1, le=settings.feed_max_page_size),
    exclude_ids: Optional[str] = Query(None, description="Comma-separated video ids already seen"),
    country: Optional[str] = Query(None, max_length=8),
    language: Optional[str] = Query(None, max_length=16),
    viewer_id: Optional[uuid.UUID] = Depends(get_viewer_id),
    service: FeedService = Depends(get_feed_service),
):
    """Engagement-velocity feed of the last 7 days."""
    try:
        return await service.trending_feed(
            viewer_id, page, limit, _split_ids(exclude_ids), country=country, language=language
        )
    except FeedTimeoutError:
        raise HTTPException(status_code=504, detail="Feed ranking timed out")
    except FeedRankingError:
        raise HTTPException(status_code=500, detail="Failed to rank trending feed")
