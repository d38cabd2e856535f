"""
ReelRank Safety Filter — the set of videos and creators a viewer must never see.

Sources:
  - block edges in either direction
  - ``not_interested`` / ``report`` feedback (video level)
  - ``hide_creator`` feedback (creator level, via the owner join)
  - the caller's "already seen this session" exclude list

Safety is evaluated before scoring and is never traded off against score.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)


def parse_exclude_ids(raw: Optional[Iterable[str]], cap: int) -> FrozenSet[uuid.UUID]:
    """First ``cap`` ids of the caller's list; unparseable entries are ignored."""
    if not raw:
        return frozenset()
    parsed = set()
    for i, value in enumerate(raw):
        if i >= cap:
            break
        try:
            parsed.add(uuid.UUID(str(value).strip()))
        except ValueError:
            continue
    return frozenset(parsed)


@dataclass(frozen=True)
class SafetyContext:
    blocked_creator_ids: FrozenSet[uuid.UUID] = frozenset()
    suppressed_creator_ids: FrozenSet[uuid.UUID] = frozenset()
    hidden_video_ids: FrozenSet[uuid.UUID] = frozenset()
    exclude_video_ids: FrozenSet[uuid.UUID] = frozenset()

    @property
    def excluded_owner_ids(self) -> FrozenSet[uuid.UUID]:
        return self.blocked_creator_ids | self.suppressed_creator_ids

    @property
    def excluded_video_ids(self) -> FrozenSet[uuid.UUID]:
        return self.hidden_video_ids | self.exclude_video_ids

    def admits(self, video_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        return (
            owner_id not in self.blocked_creator_ids
            and owner_id not in self.suppressed_creator_ids
            and video_id not in self.hidden_video_ids
            and video_id not in self.exclude_video_ids
        )


class SafetyFilter:
    """Builds a viewer's ``SafetyContext`` from the graph and feedback stores."""

    def __init__(self, graph_store, feedback_store, max_exclude_ids: int = 200):
        self.graph_store = graph_store
        self.feedback_store = feedback_store
        self.max_exclude_ids = max_exclude_ids

    def anonymous(self, exclude_ids: Optional[Iterable[str]] = None) -> SafetyContext:
        return SafetyContext(exclude_video_ids=parse_exclude_ids(exclude_ids, self.max_exclude_ids))

    async def build(
        self,
        viewer_id: Optional[uuid.UUID],
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> SafetyContext:
        if viewer_id is None:
            return self.anonymous(exclude_ids)

        blocked, suppressions = await asyncio.gather(
            self.graph_store.blocked_ids(viewer_id),
            self.feedback_store.suppressions(viewer_id),
        )
        ctx = SafetyContext(
            blocked_creator_ids=blocked,
            suppressed_creator_ids=suppressions.suppressed_creator_ids,
            hidden_video_ids=suppressions.hidden_video_ids,
            exclude_video_ids=parse_exclude_ids(exclude_ids, self.max_exclude_ids),
        )
        logger.debug(
            "Safety context built: %d blocked, %d suppressed creators, %d hidden, %d excluded",
            len(ctx.blocked_creator_ids), len(ctx.suppressed_creator_ids),
            len(ctx.hidden_video_ids), len(ctx.exclude_video_ids),
        )
        return ctx
