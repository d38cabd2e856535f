"""
ReelRank API Schemas — Pydantic v2 models for request/response validation.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from reelrank.models.models import FeedbackAction


# ═══════════════════════════════════════════════════════════════════════
# Telemetry
# ═══════════════════════════════════════════════════════════════════════

class TelemetryEventIn(BaseModel):
    """
    One client event. Fields are untyped: the service coerces or drops a bad
    event, so one malformed event never rejects the whole batch.
    """
    video_id: Any = None
    event_type: Any = None
    payload: Any = None
    session_id: Any = None
    timestamp: Any = None  # client epoch millis


class TelemetryBatch(BaseModel):
    session_id: Any = "anonymous"
    events: Any = Field(default_factory=list)


class TelemetryIngestResponse(BaseModel):
    success: bool = True
    received: int
    persisted: int


# ═══════════════════════════════════════════════════════════════════════
# Feedback
# ═══════════════════════════════════════════════════════════════════════

class FeedbackCreate(BaseModel):
    video_id: str
    action: FeedbackAction
    reason: Optional[str] = Field(None, max_length=500)


class FeedbackDelete(BaseModel):
    video_id: str
    action: FeedbackAction


class FeedbackResponse(BaseModel):
    id: str
    status: str


# ═══════════════════════════════════════════════════════════════════════
# Feed
# ═══════════════════════════════════════════════════════════════════════

class FeedCreator(BaseModel):
    id: str
    display_name: str
    avatar: Optional[str] = None


class FeedVideo(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    video_url: str
    thumbnail: Optional[str] = None
    duration: int = 0
    views: int = 0
    likes: int = 0
    comments_count: int = 0
    shares_count: int = 0
    tags: List[str] = []
    created_at: datetime
    is_liked: bool = False
    is_bookmarked: bool = False
    is_following: bool = False
    is_live: bool = False
    livestream_session_id: Optional[str] = None
    recommendation_reason: str
    score: float = 0.0
    user: Optional[FeedCreator] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int = Field(
        ...,
        description="Admissible videos for the viewer, capped at the ranking pool ceiling. "
        "Stable across pages of the same feed.",
    )
    total_pages: int
    has_more: bool


class FeedResponse(BaseModel):
    success: bool = True
    data: List[FeedVideo]
    pagination: Pagination
