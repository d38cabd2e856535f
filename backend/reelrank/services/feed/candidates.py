"""
ReelRank Candidate Retriever — over-provisioned, most-recent-first candidate pools.

The retriever pulls more videos than a page needs (``limit × multiplier × page``)
so the scorer has material to re-rank. The viewer's safety exclusions are part
of the pool query itself, so blocked or suppressed creators never occupy pool
slots and inadmissible videos never reach the scorer.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from reelrank.models.models import Video


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Candidate:
    """A video as seen by the scorers: counters, owner and age only."""
    id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    views: int = 0
    likes: int = 0
    comments_count: int = 0
    shares_count: int = 0
    completions_count: int = 0
    tags: Tuple[str, ...] = ()
    owner_followers: Optional[int] = None  # None when the owner row is gone
    video: Optional[Video] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_video(cls, video: Video) -> "Candidate":
        owner = video.owner
        return cls(
            id=video.id,
            owner_id=video.user_id,
            created_at=as_utc(video.created_at),
            views=video.views or 0,
            likes=video.likes or 0,
            comments_count=video.comments_count or 0,
            shares_count=video.shares_count or 0,
            completions_count=video.completions_count or 0,
            tags=tuple(video.tags or ()),
            owner_followers=owner.followers_count if owner is not None else None,
            video=video,
        )

    @classmethod
    def from_row(cls, row) -> "Candidate":
        """From a ``ContentStore.trending_rows`` row; ``video`` is filled in later."""
        return cls(
            id=row.id,
            owner_id=row.user_id,
            created_at=as_utc(row.created_at),
            views=row.views or 0,
            likes=row.likes or 0,
            comments_count=row.comments_count or 0,
            shares_count=row.shares_count or 0,
            completions_count=row.completions_count or 0,
            owner_followers=row.followers_count,
        )

    def age_hours(self, now: datetime) -> float:
        return max(0.0, (as_utc(now) - as_utc(self.created_at)).total_seconds() / 3600.0)


class CandidateRetriever:
    """Sizes and fetches safety-gated candidate pools from the content store."""

    def __init__(self, content_store, multiplier: int = 5, max_pool: int = 1000):
        self.content_store = content_store
        self.multiplier = multiplier
        self.max_pool = max_pool

    def pool_size(self, limit: int, page: int) -> int:
        return min(limit * self.multiplier * page, self.max_pool)

    async def fetch_pool(self, limit: int, page: int, safety) -> List[Candidate]:
        """Newest admissible videos; exclusions are applied in the query."""
        videos = await self.content_store.recent_videos(
            self.pool_size(limit, page),
            excluded_video_ids=safety.excluded_video_ids,
            excluded_owner_ids=safety.excluded_owner_ids,
        )
        return [Candidate.from_video(v) for v in videos]

    async def count_admissible(self, safety) -> int:
        """Page-independent upper bound for a ranked feed, capped at the pool ceiling."""
        total = await self.content_store.admissible_count(
            excluded_video_ids=safety.excluded_video_ids,
            excluded_owner_ids=safety.excluded_owner_ids,
        )
        return min(total, self.max_pool)

    async def fetch_trending_pool(
        self,
        since: datetime,
        min_views: int,
        safety,
        country: Optional[str] = None,
        language: Optional[str] = None,
    ) -> List[Candidate]:
        """Every eligible video in the window, as unhydrated candidates."""
        rows = await self.content_store.trending_rows(
            since=since,
            min_views=min_views,
            country=country,
            language=language,
            excluded_video_ids=safety.excluded_video_ids,
            excluded_owner_ids=safety.excluded_owner_ids,
        )
        return [Candidate.from_row(row) for row in rows]

    @staticmethod
    def admit(pool: Sequence[Candidate], safety) -> List[Candidate]:
        """Drop everything the safety context rejects, keeping pool order."""
        return [c for c in pool if safety.admits(c.id, c.owner_id)]
