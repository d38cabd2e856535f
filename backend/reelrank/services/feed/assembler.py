"""
ReelRank Result Assembler & Pager — page slicing, per-viewer flags, signed URLs.
"""
from __future__ import annotations

import asyncio
import math
import uuid
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from reelrank.schemas.schemas import FeedCreator, FeedResponse, FeedVideo, Pagination
from reelrank.services.feed.scoring import ScoredCandidate


@dataclass
class FeedPage:
    items: List[ScoredCandidate]
    page: int
    limit: int
    total: int
    more: Optional[bool] = None  # whether the ranked list extends past this page, when known

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        if self.more is not None and not self.more:
            return False
        return self.page < self.total_pages

    def pagination(self) -> Pagination:
        return Pagination(
            page=self.page,
            limit=self.limit,
            total=self.total,
            total_pages=self.total_pages,
            has_more=self.has_more,
        )


def paginate(
    ranked: Sequence[ScoredCandidate], page: int, limit: int, total: Optional[int] = None
) -> FeedPage:
    """
    Slice one page out of a ranked list. ``total`` defaults to the list length;
    a caller ranking a page-dependent pool passes a page-independent bound instead.
    """
    offset = (page - 1) * limit
    items = list(ranked[offset : offset + limit])
    if total is None:
        return FeedPage(items=items, page=page, limit=limit, total=len(ranked))
    return FeedPage(items=items, page=page, limit=limit, total=total, more=len(ranked) > offset + limit)


class ResultAssembler:
    """Turns a ranked page into the response schema. Only page items are hydrated."""

    def __init__(self, reaction_store, url_signer):
        self.reaction_store = reaction_store
        self.url_signer = url_signer

    async def assemble(
        self,
        page: FeedPage,
        viewer_id: Optional[uuid.UUID],
        followed_ids: FrozenSet[uuid.UUID] = frozenset(),
        live_sessions: Optional[Dict[uuid.UUID, str]] = None,
    ) -> FeedResponse:
        live_sessions = live_sessions or {}
        video_ids = [s.candidate.id for s in page.items]

        if viewer_id is not None and video_ids:
            liked, bookmarked = await asyncio.gather(
                self.reaction_store.liked_ids(viewer_id, video_ids),
                self.reaction_store.bookmarked_ids(viewer_id, video_ids),
            )
        else:
            liked, bookmarked = frozenset(), frozenset()

        signed = await asyncio.gather(
            *(self.url_signer.sign_video_urls(s.candidate.video) for s in page.items)
        )

        data = []
        for item, (video_url, thumbnail) in zip(page.items, signed):
            video = item.candidate.video
            owner = video.owner
            data.append(FeedVideo(
                id=str(video.id),
                user_id=str(video.user_id),
                title=video.title or "Untitled Video",
                description=video.description or "",
                video_url=video_url,
                thumbnail=thumbnail,
                duration=video.duration or 0,
                views=video.views or 0,
                likes=video.likes or 0,
                comments_count=video.comments_count or 0,
                shares_count=video.shares_count or 0,
                tags=list(video.tags or []),
                created_at=item.candidate.created_at,
                is_liked=video.id in liked,
                is_bookmarked=video.id in bookmarked,
                is_following=video.user_id in followed_ids,
                is_live=video.user_id in live_sessions,
                livestream_session_id=live_sessions.get(video.user_id),
                recommendation_reason=item.reason.value,
                score=round(item.score, 4),
                user=FeedCreator(
                    id=str(owner.id),
                    display_name=owner.display_name or "Anonymous",
                    avatar=owner.avatar,
                ) if owner is not None else None,
            ))

        return FeedResponse(data=data, pagination=page.pagination())
