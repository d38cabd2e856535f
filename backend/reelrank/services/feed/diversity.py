"""
ReelRank Diversity Enforcer — per-creator cap on each result page.

One forward pass over the ranked list. A creator's counter is checked on every
item; items past the cap are dropped (not deferred to a later page). Counters
reset each time a page's worth of items has been admitted.
"""
from __future__ import annotations

from collections import Counter
from typing import List, Sequence

from reelrank.services.feed.scoring import ScoredCandidate


def enforce_diversity(
    ranked: Sequence[ScoredCandidate], cap: int, page_size: int
) -> List[ScoredCandidate]:
    admitted: List[ScoredCandidate] = []
    per_creator: Counter = Counter()
    on_page = 0

    for item in ranked:
        if per_creator[item.owner_id] >= cap:
            continue
        per_creator[item.owner_id] += 1
        admitted.append(item)
        on_page += 1
        if on_page == page_size:
            per_creator.clear()
            on_page = 0

    return admitted
