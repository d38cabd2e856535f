"""
ReelRank ORM Models — content, social graph, feedback and telemetry tables.

Column types are the portable SQLAlchemy ones (``Uuid``, ``JSON``) so the same
mappers run on PostgreSQL in production and SQLite in the test suite.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON, DateTime, Enum, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelrank.core.database import Base


# ═══════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════

class VideoEventType(str, enum.Enum):
    IMPRESSION = "impression"
    PLAY_3S = "play_3s"
    PLAY_25PCT = "play_25pct"
    PLAY_50PCT = "play_50pct"
    PLAY_75PCT = "play_75pct"
    PLAY_100PCT = "play_100pct"
    SKIP = "skip"
    REWATCH = "rewatch"
    DWELL = "dwell"
    LIKE = "like"
    BOOKMARK = "bookmark"
    SHARE = "share"
    COMMENT = "comment"


class FeedbackAction(str, enum.Enum):
    NOT_INTERESTED = "not_interested"
    HIDE_CREATOR = "hide_creator"
    HIDE_SOUND = "hide_sound"
    REPORT = "report"


class LivestreamStatus(str, enum.Enum):
    LIVE = "live"
    ENDED = "ended"


# ═══════════════════════════════════════════════════════════════════════
# Users & Social Graph
# ═══════════════════════════════════════════════════════════════════════

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    display_name: Mapped[str] = mapped_column(String(128), default="Anonymous")
    avatar: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    followers_count: Mapped[int] = mapped_column(Integer, default=0)
    following_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    videos: Mapped[List["Video"]] = relationship("Video", back_populates="owner")


class CreatorFollow(Base):
    __tablename__ = "creator_follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_creator_follows_pair"),
        Index("ix_creator_follows_follower", "follower_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    follower_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    following_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class UserBlock(Base):
    __tablename__ = "user_blocks"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_user_blocks_pair"),
        Index("ix_user_blocks_blocker", "blocker_id"),
        Index("ix_user_blocks_blocked", "blocked_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    blocker_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    blocked_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ═══════════════════════════════════════════════════════════════════════
# Content
# ═══════════════════════════════════════════════════════════════════════

class Video(Base):
    __tablename__ = "videos"
    __table_args__ = (
        Index("ix_videos_created_at", "created_at"),
        Index("ix_videos_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))

    # Core metadata
    title: Mapped[str] = mapped_column(String(512), default="Untitled Video")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[str] = mapped_column(String(1024))
    thumbnail: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    r2_video_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    r2_thumbnail_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=0)
    tags: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    language: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # Engagement counters (maintained outside the ranking core)
    views: Mapped[int] = mapped_column(Integer, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, default=0)
    shares_count: Mapped[int] = mapped_column(Integer, default=0)
    completions_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner: Mapped["User"] = relationship("User", back_populates="videos")


class VideoLike(Base):
    __tablename__ = "video_likes"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_likes_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    video_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("videos.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class VideoBookmark(Base):
    __tablename__ = "video_bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_bookmarks_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    video_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("videos.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Livestream(Base):
    __tablename__ = "livestreams"
    __table_args__ = (
        Index("ix_livestreams_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    session_id: Mapped[str] = mapped_column(String(128), unique=True)
    status: Mapped[LivestreamStatus] = mapped_column(Enum(LivestreamStatus), default=LivestreamStatus.LIVE)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ═══════════════════════════════════════════════════════════════════════
# Feedback & Telemetry
# ═══════════════════════════════════════════════════════════════════════

class VideoFeedback(Base):
    __tablename__ = "video_feedback"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", "action", name="uq_video_feedback_triple"),
        Index("ix_video_feedback_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    video_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("videos.id", ondelete="CASCADE"))
    action: Mapped[FeedbackAction] = mapped_column(Enum(FeedbackAction))
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class VideoEvent(Base):
    """Append-only interaction telemetry. ``payload`` is never read by ranking."""
    __tablename__ = "video_events"
    __table_args__ = (
        Index("ix_video_events_video_type", "video_id", "event_type"),
        Index("ix_video_events_user", "user_id"),
        Index("ix_video_events_session", "session_id"),
        Index("ix_video_events_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    video_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("videos.id", ondelete="CASCADE"))
    event_type: Mapped[VideoEventType] = mapped_column(Enum(VideoEventType))
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    session_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
