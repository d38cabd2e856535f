"""
ReelRank Signal Aggregator — per-viewer signals from the rolling telemetry window.

The grouped ``(video_id, event_type) → count`` map from the telemetry store is
consumed exactly once here to produce:
  - per-video ``Signal`` (best watch depth, liked, skipped)
  - preferred creators (watched ≥ 50% or followed)
  - interacted creators (preferred ∪ followed; drives explore/exploit)
  - the viewer's interaction tier
"""
from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Mapping, Optional

from reelrank.models.models import VideoEventType

logger = logging.getLogger(__name__)

WATCH_DEPTH: Dict[VideoEventType, int] = {
    VideoEventType.PLAY_25PCT: 25,
    VideoEventType.PLAY_50PCT: 50,
    VideoEventType.PLAY_75PCT: 75,
    VideoEventType.PLAY_100PCT: 100,
}


class Tier(str, enum.Enum):
    ZERO = "zero"  # anonymous or no telemetry at all
    COLD = "cold"
    WARM = "warm"
    ESTABLISHED = "established"


@dataclass
class Signal:
    watch_pct: int = 0
    liked: bool = False
    skipped: bool = False


@dataclass
class ViewerSignals:
    signals: Dict[uuid.UUID, Signal] = field(default_factory=dict)
    followed_ids: FrozenSet[uuid.UUID] = frozenset()
    preferred_creators: FrozenSet[uuid.UUID] = frozenset()
    interacted_creators: FrozenSet[uuid.UUID] = frozenset()
    total_events: int = 0
    tier: Tier = Tier.ZERO

    @classmethod
    def anonymous(cls) -> "ViewerSignals":
        return cls()

    def signal_for(self, video_id: uuid.UUID) -> Optional[Signal]:
        return self.signals.get(video_id)


def classify_tier(total_events: int, warm_min: int = 10, established_min: int = 50) -> Tier:
    if total_events <= 0:
        return Tier.ZERO
    if total_events < warm_min:
        return Tier.COLD
    if total_events < established_min:
        return Tier.WARM
    return Tier.ESTABLISHED


def build_signals(
    event_counts: Mapping,
    followed_ids: FrozenSet[uuid.UUID],
    preferred_watch_pct: int = 50,
    warm_min: int = 10,
    established_min: int = 50,
) -> ViewerSignals:
    """Fold grouped event counts into a ``ViewerSignals``."""
    signals: Dict[uuid.UUID, Signal] = {}
    watched_owners = set()
    total = 0

    for video_id, entry in event_counts.items():
        signal = Signal()
        for event_type, count in entry.counts.items():
            if count <= 0:
                continue
            total += count
            depth = WATCH_DEPTH.get(event_type)
            if depth is not None:
                signal.watch_pct = max(signal.watch_pct, depth)
            elif event_type == VideoEventType.LIKE:
                signal.liked = True
            elif event_type == VideoEventType.SKIP:
                signal.skipped = True
        signals[video_id] = signal
        if signal.watch_pct >= preferred_watch_pct:
            watched_owners.add(entry.owner_id)

    preferred = frozenset(watched_owners) | followed_ids
    return ViewerSignals(
        signals=signals,
        followed_ids=followed_ids,
        preferred_creators=preferred,
        interacted_creators=preferred | followed_ids,
        total_events=total,
        tier=classify_tier(total, warm_min, established_min),
    )


class SignalAggregator:
    def __init__(
        self,
        telemetry_store,
        graph_store,
        lookback_days: int = 14,
        preferred_watch_pct: int = 50,
        warm_min: int = 10,
        established_min: int = 50,
    ):
        self.telemetry_store = telemetry_store
        self.graph_store = graph_store
        self.lookback_days = lookback_days
        self.preferred_watch_pct = preferred_watch_pct
        self.warm_min = warm_min
        self.established_min = established_min

    async def aggregate(self, viewer_id: Optional[uuid.UUID], now: datetime) -> ViewerSignals:
        if viewer_id is None:
            return ViewerSignals.anonymous()

        since = now - timedelta(days=self.lookback_days)
        event_counts, followed = await asyncio.gather(
            self.telemetry_store.event_counts(viewer_id, since),
            self.graph_store.followed_ids(viewer_id),
        )
        viewer = build_signals(
            event_counts,
            followed,
            preferred_watch_pct=self.preferred_watch_pct,
            warm_min=self.warm_min,
            established_min=self.established_min,
        )
        logger.debug(
            "Signals for %s: %d events over %d videos, tier=%s",
            viewer_id, viewer.total_events, len(viewer.signals), viewer.tier.value,
        )
        return viewer
