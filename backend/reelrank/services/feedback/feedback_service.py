"""
ReelRank Feedback Service — viewer suppression signals for the feed.

Actions:
  not_interested  hide this video
  hide_creator    hide every video from this video's owner
  hide_sound      recorded only; no audio-track model exists in the ranking core
  report          hide this video

One row per (user, video, action): re-submitting refreshes ``reason`` and
``created_at`` instead of inserting a duplicate.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reelrank.models.models import FeedbackAction, Video, VideoFeedback
from reelrank.schemas.schemas import FeedbackCreate

logger = logging.getLogger(__name__)


class VideoNotFoundError(LookupError):
    pass


class FeedbackService:
    """Idempotent feedback upserts plus aggregate counts."""

    async def submit_feedback(
        self, data: FeedbackCreate, db: AsyncSession, user_id: uuid.UUID
    ) -> str:
        """Upsert one (user, video, action) record; returns its id."""
        video_id = uuid.UUID(data.video_id)
        if await db.get(Video, video_id) is None:
            raise VideoNotFoundError(data.video_id)

        existing = await self._find(db, user_id, video_id, data.action)
        if existing is None:
            feedback = VideoFeedback(
                user_id=user_id,
                video_id=video_id,
                action=data.action,
                reason=data.reason,
                created_at=datetime.now(timezone.utc),
            )
            db.add(feedback)
            try:
                await db.flush()
                logger.info(f"Feedback recorded: {data.action.value} on {video_id} by {user_id}")
                return str(feedback.id)
            except IntegrityError:
                # Lost an insert race on the unique triple; fall through to update.
                await db.rollback()
                existing = await self._find(db, user_id, video_id, data.action)

        existing.reason = data.reason
        existing.created_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info(f"Feedback refreshed: {data.action.value} on {video_id} by {user_id}")
        return str(existing.id)

    async def remove_feedback(
        self, video_id: str, action: FeedbackAction, db: AsyncSession, user_id: uuid.UUID
    ) -> bool:
        result = await db.execute(
            delete(VideoFeedback).where(
                VideoFeedback.user_id == user_id,
                VideoFeedback.video_id == uuid.UUID(video_id),
                VideoFeedback.action == action,
            )
        )
        return (result.rowcount or 0) > 0

    async def get_feedback_stats(self, db: AsyncSession) -> Dict:
        """Aggregate feedback counts by action."""
        result = await db.execute(
            select(VideoFeedback.action, func.count(VideoFeedback.id)).group_by(VideoFeedback.action)
        )
        by_action = {action.value: 0 for action in FeedbackAction}
        for action, count in result:
            by_action[FeedbackAction(action).value] = count
        return {"total": sum(by_action.values()), **by_action}

    @staticmethod
    async def _find(db: AsyncSession, user_id, video_id, action):
        return await db.scalar(
            select(VideoFeedback).where(
                VideoFeedback.user_id == user_id,
                VideoFeedback.video_id == video_id,
                VideoFeedback.action == action,
            )
        )


feedback_service = FeedbackService()
