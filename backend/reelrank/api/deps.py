"""
ReelRank API dependencies.
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Header, HTTPException

from reelrank.services.feed.feed_service import FeedService, feed_service
from reelrank.services.telemetry.telemetry_service import TelemetryService, telemetry_service


async def get_viewer_id(x_viewer_id: Optional[str] = Header(None)) -> Optional[uuid.UUID]:
    """Viewer id forwarded by the auth gateway; absent means anonymous."""
    if not x_viewer_id:
        return None
    try:
        return uuid.UUID(x_viewer_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid viewer ID format")


async def require_viewer_id(x_viewer_id: Optional[str] = Header(None)) -> uuid.UUID:
    viewer_id = await get_viewer_id(x_viewer_id)
    if viewer_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return viewer_id


def get_feed_service() -> FeedService:
    return feed_service


def get_telemetry_service() -> TelemetryService:
    return telemetry_service
