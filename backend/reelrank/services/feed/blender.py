"""
ReelRank Cold-Start Blender — explore/exploit mixing by interaction tier.

    cold         floor(limit · 0.5) explore slots, rest from familiar creators
    warm         floor(limit · 0.3) explore slots, rest from familiar creators
                 or anything with nonzero engagement
    established  score order untouched

Explore = owner outside the viewer's interaction history. Reserved explore
picks are relabelled ``new_creator_spotlight``. Blending runs page by page over
the score-sorted list; a page left short by one queue is back-filled from the
other, and each page keeps score order.
"""
from __future__ import annotations

import dataclasses
import math
from typing import Callable, List, Sequence

from reelrank.services.feed.scoring import Reason, ScoredCandidate
from reelrank.services.feed.signals import Tier


class ColdStartBlender:

    def __init__(self, cold_explore_ratio: float = 0.5, warm_explore_ratio: float = 0.3):
        self.ratios = {
            Tier.COLD: cold_explore_ratio,
            Tier.WARM: warm_explore_ratio,
        }

    def explore_slots(self, tier: Tier, limit: int) -> int:
        ratio = self.ratios.get(tier)
        if ratio is None:
            return 0
        # epsilon absorbs float error such as 10 * 0.3 == 3.0000000000000004
        return int(math.floor(limit * ratio + 1e-9))

    @staticmethod
    def _exploit_predicate(tier: Tier) -> Callable[[ScoredCandidate], bool]:
        if tier == Tier.WARM:
            return lambda s: not s.is_explore or s.engagement > 0
        return lambda s: not s.is_explore

    def blend(self, scored: Sequence[ScoredCandidate], tier: Tier, limit: int) -> List[ScoredCandidate]:
        if tier not in self.ratios or limit <= 0:
            return list(scored)

        quota = self.explore_slots(tier, limit)
        exploit_ok = self._exploit_predicate(tier)
        remaining = list(scored)
        blended: List[ScoredCandidate] = []

        while remaining:
            explore = [s for s in remaining if s.is_explore][:quota]
            chosen = {id(s) for s in explore}

            fill = [s for s in remaining if id(s) not in chosen and exploit_ok(s)]
            chosen.update(id(s) for s in fill[: limit - len(explore)])

            if len(chosen) < limit:
                backfill = [s for s in remaining if id(s) not in chosen]
                chosen.update(id(s) for s in backfill[: limit - len(chosen)])

            reserved = {id(s) for s in explore}
            for s in remaining:
                if id(s) not in chosen:
                    continue
                if id(s) in reserved:
                    s = dataclasses.replace(s, reason=Reason.NEW_CREATOR_SPOTLIGHT)
                blended.append(s)
            remaining = [s for s in remaining if id(s) not in chosen]

        return blended
