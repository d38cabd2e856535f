"""
ReelRank Stores — async repositories over the relational store.

Each read opens its own ``AsyncSession`` so the feed service can fan reads out
concurrently (an ``AsyncSession`` does not allow concurrent operations).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from reelrank.core.database import async_session_factory
from reelrank.models.models import (
    CreatorFollow,
    FeedbackAction,
    Livestream,
    LivestreamStatus,
    User,
    UserBlock,
    Video,
    VideoBookmark,
    VideoEvent,
    VideoEventType,
    VideoFeedback,
    VideoLike,
)

logger = logging.getLogger(__name__)


class _Store:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self.session_factory = session_factory


# ═══════════════════════════════════════════════════════════════════════
# Content
# ═══════════════════════════════════════════════════════════════════════

def _exclusions(
    excluded_video_ids: Iterable[uuid.UUID] = (),
    excluded_owner_ids: Iterable[uuid.UUID] = (),
) -> list:
    """``WHERE`` clauses that keep a viewer's safety exclusions out of a read."""
    conditions = []
    excluded_video_ids = list(excluded_video_ids)
    excluded_owner_ids = list(excluded_owner_ids)
    if excluded_video_ids:
        conditions.append(Video.id.notin_(excluded_video_ids))
    if excluded_owner_ids:
        conditions.append(Video.user_id.notin_(excluded_owner_ids))
    return conditions


class ContentStore(_Store):
    """Video catalog reads. Results always carry their owner row (or None)."""

    async def recent_videos(
        self,
        limit: int,
        excluded_video_ids: Iterable[uuid.UUID] = (),
        excluded_owner_ids: Iterable[uuid.UUID] = (),
    ) -> List[Video]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Video)
                .options(joinedload(Video.owner))
                .where(*_exclusions(excluded_video_ids, excluded_owner_ids))
                .order_by(Video.created_at.desc(), Video.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def admissible_count(
        self,
        excluded_video_ids: Iterable[uuid.UUID] = (),
        excluded_owner_ids: Iterable[uuid.UUID] = (),
    ) -> int:
        async with self.session_factory() as db:
            return await db.scalar(
                select(func.count(Video.id)).where(*_exclusions(excluded_video_ids, excluded_owner_ids))
            ) or 0

    async def recent_page(
        self,
        offset: int,
        limit: int,
        excluded_video_ids: Iterable[uuid.UUID] = (),
        excluded_owner_ids: Iterable[uuid.UUID] = (),
    ) -> Tuple[List[Video], int]:
        """Most-recent page plus the total admissible count, filtered in SQL."""
        conditions = _exclusions(excluded_video_ids, excluded_owner_ids)

        async with self.session_factory() as db:
            total = await db.scalar(select(func.count(Video.id)).where(*conditions)) or 0
            result = await db.execute(
                select(Video)
                .options(joinedload(Video.owner))
                .where(*conditions)
                .order_by(Video.created_at.desc(), Video.id)
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), total

    async def trending_rows(
        self,
        since: datetime,
        min_views: int,
        country: Optional[str] = None,
        language: Optional[str] = None,
        excluded_video_ids: Iterable[uuid.UUID] = (),
        excluded_owner_ids: Iterable[uuid.UUID] = (),
    ) -> list:
        """
        Counters of every eligible video in the window, without loading ORM
        objects. Only the served page is hydrated later (``videos_by_ids``).
        """
        query = (
            select(
                Video.id,
                Video.user_id,
                Video.created_at,
                Video.views,
                Video.likes,
                Video.comments_count,
                Video.shares_count,
                Video.completions_count,
                User.followers_count,
            )
            .outerjoin(User, User.id == Video.user_id)
            .where(
                Video.created_at >= since,
                Video.views >= min_views,
                *_exclusions(excluded_video_ids, excluded_owner_ids),
            )
        )
        if country:
            query = query.where(Video.country == country)
        if language:
            query = query.where(Video.language == language)
        query = query.order_by(Video.created_at.desc(), Video.id)

        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.all())

    async def videos_by_ids(self, video_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Video]:
        if not video_ids:
            return {}
        async with self.session_factory() as db:
            result = await db.execute(
                select(Video).options(joinedload(Video.owner)).where(Video.id.in_(video_ids))
            )
            return {video.id: video for video in result.scalars().all()}


# ═══════════════════════════════════════════════════════════════════════
# Social Graph
# ═══════════════════════════════════════════════════════════════════════

class SocialGraphStore(_Store):

    async def followed_ids(self, viewer_id: uuid.UUID) -> FrozenSet[uuid.UUID]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CreatorFollow.following_id).where(CreatorFollow.follower_id == viewer_id)
            )
            return frozenset(result.scalars().all())

    async def blocked_ids(self, viewer_id: uuid.UUID) -> FrozenSet[uuid.UUID]:
        """Users on either side of a block edge with the viewer."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(UserBlock.blocker_id, UserBlock.blocked_id).where(
                    or_(UserBlock.blocker_id == viewer_id, UserBlock.blocked_id == viewer_id)
                )
            )
            blocked: Set[uuid.UUID] = set()
            for blocker_id, blocked_id in result:
                blocked.add(blocked_id if blocker_id == viewer_id else blocker_id)
            return frozenset(blocked)


# ═══════════════════════════════════════════════════════════════════════
# Feedback
# ═══════════════════════════════════════════════════════════════════════

HIDDEN_VIDEO_ACTIONS = (FeedbackAction.NOT_INTERESTED, FeedbackAction.REPORT)


@dataclass(frozen=True)
class Suppressions:
    hidden_video_ids: FrozenSet[uuid.UUID] = frozenset()
    suppressed_creator_ids: FrozenSet[uuid.UUID] = frozenset()


class FeedbackStore(_Store):

    async def suppressions(self, viewer_id: uuid.UUID) -> Suppressions:
        """
        Video-level and creator-level suppressions for one viewer.

        ``hide_creator`` is stored against a video; joining it back to the
        video's owner turns it into a creator-level suppression.
        """
        async with self.session_factory() as db:
            hidden = await db.execute(
                select(VideoFeedback.video_id).where(
                    VideoFeedback.user_id == viewer_id,
                    VideoFeedback.action.in_(HIDDEN_VIDEO_ACTIONS),
                )
            )
            creators = await db.execute(
                select(Video.user_id)
                .join(VideoFeedback, VideoFeedback.video_id == Video.id)
                .where(
                    VideoFeedback.user_id == viewer_id,
                    VideoFeedback.action == FeedbackAction.HIDE_CREATOR,
                )
                .distinct()
            )
            return Suppressions(
                hidden_video_ids=frozenset(hidden.scalars().all()),
                suppressed_creator_ids=frozenset(creators.scalars().all()),
            )


# ═══════════════════════════════════════════════════════════════════════
# Telemetry
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class VideoEventCounts:
    owner_id: uuid.UUID
    counts: Dict[VideoEventType, int] = field(default_factory=dict)


class TelemetryStore(_Store):

    async def event_counts(
        self, viewer_id: uuid.UUID, since: datetime
    ) -> Dict[uuid.UUID, VideoEventCounts]:
        """
        ``(video_id, event_type) → count`` for one viewer's window, in a single
        grouped query. Events on videos that no longer exist fall out of the join.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    VideoEvent.video_id,
                    Video.user_id,
                    VideoEvent.event_type,
                    func.count(VideoEvent.id),
                )
                .join(Video, Video.id == VideoEvent.video_id)
                .where(VideoEvent.user_id == viewer_id, VideoEvent.created_at >= since)
                .group_by(VideoEvent.video_id, Video.user_id, VideoEvent.event_type)
            )
            counts: Dict[uuid.UUID, VideoEventCounts] = {}
            for video_id, owner_id, event_type, count in result:
                entry = counts.setdefault(video_id, VideoEventCounts(owner_id=owner_id))
                entry.counts[VideoEventType(event_type)] = count
            return counts


# ═══════════════════════════════════════════════════════════════════════
# Live Sessions & Reactions
# ═══════════════════════════════════════════════════════════════════════

class LiveSessionIndex(_Store):

    async def live_sessions(self) -> Dict[uuid.UUID, str]:
        """creator id → active broadcast session id."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Livestream.user_id, Livestream.session_id).where(
                    Livestream.status == LivestreamStatus.LIVE
                )
            )
            return {user_id: session_id for user_id, session_id in result}


class ReactionStore(_Store):

    async def liked_ids(self, viewer_id: uuid.UUID, video_ids: List[uuid.UUID]) -> FrozenSet[uuid.UUID]:
        if not video_ids:
            return frozenset()
        async with self.session_factory() as db:
            result = await db.execute(
                select(VideoLike.video_id).where(
                    VideoLike.user_id == viewer_id, VideoLike.video_id.in_(video_ids)
                )
            )
            return frozenset(result.scalars().all())

    async def bookmarked_ids(self, viewer_id: uuid.UUID, video_ids: List[uuid.UUID]) -> FrozenSet[uuid.UUID]:
        if not video_ids:
            return frozenset()
        async with self.session_factory() as db:
            result = await db.execute(
                select(VideoBookmark.video_id).where(
                    VideoBookmark.user_id == viewer_id, VideoBookmark.video_id.in_(video_ids)
                )
            )
            return frozenset(result.scalars().all())
