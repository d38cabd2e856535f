"""
ReelRank Trending Scorer — engagement velocity, normalized by audience size.

    engagement = likes·2 + views + comments·3 + share_rate·50 + completion_rate·40
    normalized = engagement / sqrt(followers + 1)
    trending   = normalized / (age_hours + 2) ^ 1.5

The pool handed in is already quality-gated (views ≥ 10, last 7 days); the gate
is re-applied here so a mis-sized pool can never leak low-signal videos.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Sequence

import numpy as np

from reelrank.services.feed.candidates import Candidate
from reelrank.services.feed.scoring import Reason, ScoredCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrendingWeights:
    min_views: int = 10
    like_weight: float = 2.0
    view_weight: float = 1.0
    comment_weight: float = 3.0
    share_weight: float = 50.0
    completion_weight: float = 40.0
    decay_offset_hours: float = 2.0
    decay_exponent: float = 1.5
    viral_share_rate: float = 0.1
    high_completion_rate: float = 0.5
    rapid_max_age_hours: float = 12.0
    rapid_min_engagement: float = 50.0
    rising_max_followers: int = 50
    rising_min_score: float = 5.0

    def __post_init__(self):
        # share and completion rates divide by views
        if self.min_views < 1:
            object.__setattr__(self, "min_views", 1)


class TrendingScorer:

    def __init__(self, weights: TrendingWeights | None = None):
        self.w = weights or TrendingWeights()

    def rank(self, candidates: Sequence[Candidate], now: datetime) -> List[ScoredCandidate]:
        w = self.w
        pool = [c for c in candidates if c.views >= w.min_views]
        if not pool:
            return []

        views = np.array([c.views for c in pool], dtype=float)
        likes = np.array([c.likes for c in pool], dtype=float)
        comments = np.array([c.comments_count for c in pool], dtype=float)
        shares = np.array([c.shares_count for c in pool], dtype=float)
        completions = np.array([c.completions_count for c in pool], dtype=float)
        followers = np.array(
            [c.owner_followers if c.owner_followers is not None else 1 for c in pool],
            dtype=float,
        )
        hours = np.array([c.age_hours(now) for c in pool], dtype=float)

        share_rate = shares / views
        completion_rate = completions / views
        engagement = (
            likes * w.like_weight
            + views * w.view_weight
            + comments * w.comment_weight
            + share_rate * w.share_weight
            + completion_rate * w.completion_weight
        )
        normalized = engagement / np.sqrt(followers + 1)
        scores = normalized / np.power(hours + w.decay_offset_hours, w.decay_exponent)

        order = np.argsort(-scores, kind="stable")
        ranked = []
        for i in order:
            ranked.append(ScoredCandidate(
                candidate=pool[i],
                score=float(scores[i]),
                reason=self._reason(
                    float(share_rate[i]), float(completion_rate[i]), float(hours[i]),
                    float(engagement[i]), float(followers[i]), float(scores[i]),
                ),
                engagement=float(engagement[i]),
            ))
        return ranked

    def _reason(
        self,
        share_rate: float,
        completion_rate: float,
        hours: float,
        engagement: float,
        followers: float,
        score: float,
    ) -> Reason:
        w = self.w
        if share_rate > w.viral_share_rate:
            return Reason.VIRAL_SHARES
        if completion_rate > w.high_completion_rate:
            return Reason.HIGH_COMPLETION
        if hours < w.rapid_max_age_hours and engagement > w.rapid_min_engagement:
            return Reason.RAPID_ENGAGEMENT
        if followers < w.rising_max_followers and score > w.rising_min_score:
            return Reason.RISING_CREATOR
        return Reason.POPULAR_THIS_WEEK
