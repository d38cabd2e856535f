"""
ReelRank API — Feedback routes.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from reelrank.api.deps import require_viewer_id
from reelrank.core.database import get_db
from reelrank.schemas.schemas import FeedbackCreate, FeedbackDelete, FeedbackResponse
from reelrank.services.feedback.feedback_service import VideoNotFoundError, feedback_service

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackResponse)
async def submit_feedback(
    data: FeedbackCreate,
    viewer_id: uuid.UUID = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    """Record not_interested / hide_creator / hide_sound / report (idempotent)."""
    try:
        feedback_id = await feedback_service.submit_feedback(data, db, viewer_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid video ID format")
    except VideoNotFoundError:
        raise HTTPException(status_code=404, detail="Video not found")
    return FeedbackResponse(id=feedback_id, status="received")


@router.delete("")
async def remove_feedback(
    data: FeedbackDelete,
    viewer_id: uuid.UUID = Depends(require_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    """Undo a previously submitted feedback action."""
    try:
        removed = await feedback_service.remove_feedback(data.video_id, data.action, db, viewer_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid video ID format")
    return {"removed": removed}


@router.get("/stats")
async def get_feedback_stats(db: AsyncSession = Depends(get_db)):
    """Get aggregated feedback statistics."""
    return await feedback_service.get_feedback_stats(db)
