"""
ReelRank Scorer — personalized candidate scores and recommendation reasons.

score = recency + normalized engagement + creator affinity + follow
        + per-video signal (like / skip) + new-creator + exploration

All constants come from ``RankingWeights`` (populated from settings). The skip
penalty must outweigh the like boost so a skipped video cannot climb back up
on a single like.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, fields
from datetime import datetime
from typing import List, Sequence

from reelrank.core.config import Settings
from reelrank.services.feed.candidates import Candidate
from reelrank.services.feed.signals import ViewerSignals


class Reason(str, enum.Enum):
    # Personalized feed
    FROM_FOLLOWED_CREATOR = "from_followed_creator"
    BECAUSE_YOU_LIKED_SIMILAR = "because_you_liked_similar"
    NEW_CREATOR_SPOTLIGHT = "new_creator_spotlight"
    TRENDING_IN_YOUR_AREA = "trending_in_your_area"
    POPULAR_THIS_WEEK = "popular_this_week"
    # Trending feed
    VIRAL_SHARES = "viral_shares"
    HIGH_COMPLETION = "high_completion"
    RAPID_ENGAGEMENT = "rapid_engagement"
    RISING_CREATOR = "rising_creator"


@dataclass(frozen=True)
class RankingWeights:
    recency_window_days: float = 10.0
    like_weight: float = 2.0
    view_weight: float = 1.0
    comment_weight: float = 3.0
    engagement_log_scale: float = 3.0
    creator_boost: float = 5.0
    follow_boost: float = 8.0
    like_boost: float = 3.0
    skip_penalty: float = 8.0
    new_creator_boost: float = 3.0
    new_creator_max_views: int = 100
    exploration_boost: float = 2.0
    local_trend_min_engagement: int = 100
    local_trend_max_age_hours: float = 48.0

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} must be non-negative")
        if self.skip_penalty <= self.like_boost:
            raise ValueError("skip_penalty must be strictly greater than like_boost")
        largest_boost = max(
            self.creator_boost, self.follow_boost,
            self.new_creator_boost, self.exploration_boost,
        )
        if self.skip_penalty < largest_boost:
            raise ValueError("skip_penalty must not be smaller than any single positive boost")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingWeights":
        return cls(
            recency_window_days=settings.recency_window_days,
            like_weight=settings.engagement_like_weight,
            view_weight=settings.engagement_view_weight,
            comment_weight=settings.engagement_comment_weight,
            engagement_log_scale=settings.engagement_log_scale,
            creator_boost=settings.creator_boost,
            follow_boost=settings.follow_boost,
            like_boost=settings.like_boost,
            skip_penalty=settings.skip_penalty,
            new_creator_boost=settings.new_creator_boost,
            new_creator_max_views=settings.new_creator_max_views,
            exploration_boost=settings.exploration_boost,
            local_trend_min_engagement=settings.local_trend_min_engagement,
            local_trend_max_age_hours=settings.local_trend_max_age_hours,
        )


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float
    reason: Reason
    engagement: float = 0.0
    is_explore: bool = False  # owner outside the viewer's interaction history

    @property
    def owner_id(self):
        return self.candidate.owner_id


class Scorer:
    """Personalized scorer. Pure and synchronous — all I/O happens upstream."""

    def __init__(self, weights: RankingWeights | None = None):
        self.w = weights or RankingWeights()

    def engagement(self, c: Candidate) -> float:
        return c.likes * self.w.like_weight + c.views * self.w.view_weight + c.comments_count * self.w.comment_weight

    def score(self, c: Candidate, viewer: ViewerSignals, now: datetime) -> ScoredCandidate:
        w = self.w
        h = c.age_hours(now)

        recency = max(0.0, w.recency_window_days - h / 24.0)
        engagement = self.engagement(c)
        normalized = math.log10(engagement + 1) * w.engagement_log_scale

        followed = c.owner_id in viewer.followed_ids
        creator = w.creator_boost if c.owner_id in viewer.preferred_creators else 0.0
        follow = w.follow_boost if followed else 0.0

        signal_boost = 0.0
        signal = viewer.signal_for(c.id)
        if signal is not None:
            if signal.liked:
                signal_boost += w.like_boost
            if signal.skipped:
                signal_boost -= w.skip_penalty

        new_creator = w.new_creator_boost if c.views < w.new_creator_max_views else 0.0
        unfamiliar = c.owner_id not in viewer.interacted_creators
        exploration = w.exploration_boost if unfamiliar else 0.0

        total = recency + normalized + creator + follow + signal_boost + new_creator + exploration

        if followed:
            reason = Reason.FROM_FOLLOWED_CREATOR
        elif creator > 0:
            reason = Reason.BECAUSE_YOU_LIKED_SIMILAR
        elif new_creator > 0:
            reason = Reason.NEW_CREATOR_SPOTLIGHT
        elif engagement > w.local_trend_min_engagement and h < w.local_trend_max_age_hours:
            reason = Reason.TRENDING_IN_YOUR_AREA
        else:
            reason = Reason.POPULAR_THIS_WEEK

        return ScoredCandidate(
            candidate=c,
            score=total,
            reason=reason,
            engagement=engagement,
            is_explore=unfamiliar,
        )

    def rank(
        self, candidates: Sequence[Candidate], viewer: ViewerSignals, now: datetime
    ) -> List[ScoredCandidate]:
        """Score and sort descending; ``sorted`` is stable so ties keep retrieval order."""
        scored = [self.score(c, viewer, now) for c in candidates]
        return sorted(scored, key=lambda s: -s.score)

    def anonymous_reason(self, c: Candidate) -> Reason:
        if c.views < self.w.new_creator_max_views:
            return Reason.NEW_CREATOR_SPOTLIGHT
        return Reason.POPULAR_THIS_WEEK
