"""
ReelRank Feed Service — personalized and trending feed orchestration.

Personalized pipeline:
1. Concurrent reads (safety-gated candidate pool, signals, live index), one timeout
2. Safety admission
3. Scoring
4. Cold-start blending
5. Diversity cap (2 per creator per page)
6. Pagination, per-viewer flags, URL signing

Anonymous and zero-telemetry viewers skip 3–5 and get the newest safe videos.
Any failure is a hard failure for the request: nothing partial, nothing unfiltered.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrank.core.config import Settings, get_settings
from reelrank.core.database import async_session_factory
from reelrank.core.metrics import FEED_FAILURES, FEED_LATENCY, FEED_REQUESTS
from reelrank.schemas.schemas import FeedResponse
from reelrank.services.feed.assembler import FeedPage, ResultAssembler, paginate
from reelrank.services.feed.blender import ColdStartBlender
from reelrank.services.feed.candidates import Candidate, CandidateRetriever
from reelrank.services.feed.diversity import enforce_diversity
from reelrank.services.feed.safety import SafetyContext, SafetyFilter
from reelrank.services.feed.scoring import RankingWeights, ScoredCandidate, Scorer
from reelrank.services.feed.signals import SignalAggregator, Tier
from reelrank.services.feed.stores import (
    ContentStore,
    FeedbackStore,
    LiveSessionIndex,
    ReactionStore,
    SocialGraphStore,
    TelemetryStore,
)
from reelrank.services.feed.trending import TrendingScorer, TrendingWeights
from reelrank.services.media.url_signer import url_signer as default_url_signer

logger = logging.getLogger(__name__)


class FeedRankingError(Exception):
    """The ranking pipeline failed; the request must not return anything."""


class FeedTimeoutError(FeedRankingError):
    """A store read did not finish within the request timeout."""


class FeedService:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        settings: Optional[Settings] = None,
        url_signer=None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self.content_store = ContentStore(session_factory)
        self.graph_store = SocialGraphStore(session_factory)
        self.feedback_store = FeedbackStore(session_factory)
        self.telemetry_store = TelemetryStore(session_factory)
        self.live_index = LiveSessionIndex(session_factory)
        self.reaction_store = ReactionStore(session_factory)

        self.safety_filter = SafetyFilter(self.graph_store, self.feedback_store, s.feed_max_exclude_ids)
        self.signal_aggregator = SignalAggregator(
            self.telemetry_store,
            self.graph_store,
            lookback_days=s.signal_lookback_days,
            preferred_watch_pct=s.preferred_watch_pct,
            warm_min=s.tier_warm_min_events,
            established_min=s.tier_established_min_events,
        )
        self.retriever = CandidateRetriever(
            self.content_store, s.feed_candidate_multiplier, s.feed_max_candidate_pool
        )
        self.scorer = Scorer(RankingWeights.from_settings(s))
        self.trending_scorer = TrendingScorer(TrendingWeights(
            min_views=s.trending_min_views,
            share_weight=s.trending_share_weight,
            completion_weight=s.trending_completion_weight,
            decay_offset_hours=s.trending_decay_offset_hours,
            decay_exponent=s.trending_decay_exponent,
        ))
        self.blender = ColdStartBlender(s.cold_explore_ratio, s.warm_explore_ratio)
        self.assembler = ResultAssembler(self.reaction_store, url_signer or default_url_signer)

    # ── Public API ───────────────────────────────────────────────────────

    async def personalized_feed(
        self,
        viewer_id: Optional[uuid.UUID],
        page: int = 1,
        limit: int = 20,
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> FeedResponse:
        start = time.time()
        now = datetime.now(timezone.utc)
        deadline = self._deadline()
        try:
            if viewer_id is None:
                response = await self._recent_feed(
                    deadline, None, self.safety_filter.anonymous(exclude_ids), page, limit
                )
                FEED_REQUESTS.labels(surface="personalized", path="anonymous").inc()
                return response

            (safety, pool, admissible), viewer, live = await self._read(
                deadline,
                self._gated_pool(self.safety_filter.build(viewer_id, exclude_ids), limit, page),
                self.signal_aggregator.aggregate(viewer_id, now),
                self.live_index.live_sessions(),
            )

            if viewer.tier == Tier.ZERO:
                response = await self._recent_feed(
                    deadline, viewer_id, safety, page, limit, viewer.followed_ids, live
                )
                FEED_REQUESTS.labels(surface="personalized", path="zero_signal").inc()
                return response

            candidates = self.retriever.admit(pool, safety)
            scored = self.scorer.rank(candidates, viewer, now)
            blended = self.blender.blend(scored, viewer.tier, limit)
            diversified = enforce_diversity(blended, self.settings.personalized_creator_cap, limit)
            result = paginate(diversified, page, limit, total=admissible)

            logger.info(
                "Personalized feed for %s: tier=%s pool=%d admitted=%d ranked=%d page=%d",
                viewer_id, viewer.tier.value, len(pool), len(candidates), len(diversified), page,
            )
            response = await self._bounded(
                self.assembler.assemble(result, viewer_id, viewer.followed_ids, live), deadline
            )
            FEED_REQUESTS.labels(surface="personalized", path=viewer.tier.value).inc()
            return response
        except FeedRankingError:
            raise
        except Exception as e:
            FEED_FAILURES.labels(surface="personalized", reason="error").inc()
            logger.exception("Personalized feed failed for %s", viewer_id)
            raise FeedRankingError(str(e)) from e
        finally:
            FEED_LATENCY.labels(surface="personalized").observe(time.time() - start)

    async def trending_feed(
        self,
        viewer_id: Optional[uuid.UUID],
        page: int = 1,
        limit: int = 20,
        exclude_ids: Optional[Iterable[str]] = None,
        country: Optional[str] = None,
        language: Optional[str] = None,
    ) -> FeedResponse:
        start = time.time()
        now = datetime.now(timezone.utc)
        deadline = self._deadline()
        s = self.settings
        try:
            followed = self._no_follows() if viewer_id is None else self.graph_store.followed_ids(viewer_id)
            (safety, pool), followed_ids, live = await self._read(
                deadline,
                self._gated_trending_pool(
                    self.safety_filter.build(viewer_id, exclude_ids),
                    since=now - timedelta(days=s.trending_window_days),
                    country=country,
                    language=language,
                ),
                followed,
                self.live_index.live_sessions(),
            )

            candidates = self.retriever.admit(pool, safety)
            ranked = self.trending_scorer.rank(candidates, now)
            diversified = enforce_diversity(ranked, s.trending_creator_cap, limit)
            result = await self._bounded(self._hydrate(paginate(diversified, page, limit)), deadline)

            logger.info(
                "Trending feed: pool=%d admitted=%d ranked=%d page=%d country=%s language=%s",
                len(pool), len(candidates), len(diversified), page, country, language,
            )
            response = await self._bounded(
                self.assembler.assemble(result, viewer_id, followed_ids, live), deadline
            )
            FEED_REQUESTS.labels(surface="trending", path="trending").inc()
            return response
        except FeedRankingError:
            raise
        except Exception as e:
            FEED_FAILURES.labels(surface="trending", reason="error").inc()
            logger.exception("Trending feed failed")
            raise FeedRankingError(str(e)) from e
        finally:
            FEED_LATENCY.labels(surface="trending").observe(time.time() - start)

    # ── Internals ────────────────────────────────────────────────────────

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self.settings.feed_read_timeout_seconds

    async def _bounded(self, aw: Awaitable, deadline: float):
        """Await ``aw`` within what is left of the request's read budget."""
        remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            return await asyncio.wait_for(aw, timeout=remaining)
        except asyncio.TimeoutError as e:
            FEED_FAILURES.labels(surface="feed", reason="timeout").inc()
            logger.warning("Feed reads timed out (budget %.2fs)", self.settings.feed_read_timeout_seconds)
            raise FeedTimeoutError("feed reads timed out") from e

    async def _read(self, deadline: float, *reads: Awaitable):
        """Fan reads out concurrently and join before ranking."""
        return await self._bounded(asyncio.gather(*reads), deadline)

    @staticmethod
    async def _no_follows():
        return frozenset()

    async def _gated_pool(self, safety_read: Awaitable[SafetyContext], limit: int, page: int):
        """Resolve exclusions, then pull the pool and its page-independent total with them."""
        safety = await safety_read
        pool, admissible = await asyncio.gather(
            self.retriever.fetch_pool(limit, page, safety),
            self.retriever.count_admissible(safety),
        )
        return safety, pool, admissible

    async def _gated_trending_pool(
        self,
        safety_read: Awaitable[SafetyContext],
        since: datetime,
        country: Optional[str],
        language: Optional[str],
    ):
        safety = await safety_read
        pool = await self.retriever.fetch_trending_pool(
            since=since,
            min_views=self.trending_scorer.w.min_views,
            safety=safety,
            country=country,
            language=language,
        )
        return safety, pool

    async def _hydrate(self, result: FeedPage) -> FeedPage:
        """Load full video rows for the page items only; rows deleted since ranking drop out."""
        videos = await self.content_store.videos_by_ids([s.candidate.id for s in result.items])
        result.items = [
            replace(s, candidate=replace(s.candidate, video=videos[s.candidate.id]))
            for s in result.items
            if s.candidate.id in videos
        ]
        return result

    async def _recent_feed(
        self,
        deadline: float,
        viewer_id: Optional[uuid.UUID],
        safety: SafetyContext,
        page: int,
        limit: int,
        followed_ids=frozenset(),
        live=None,
    ) -> FeedResponse:
        """Newest admissible videos, paginated in the store; no personalization."""
        reads = [
            self.content_store.recent_page(
                offset=(page - 1) * limit,
                limit=limit,
                excluded_video_ids=safety.excluded_video_ids,
                excluded_owner_ids=safety.excluded_owner_ids,
            )
        ]
        if live is None:
            reads.append(self.live_index.live_sessions())
            (videos, total), live = await self._read(deadline, *reads)
        else:
            ((videos, total),) = await self._read(deadline, *reads)

        items = []
        for video in videos:
            candidate = Candidate.from_video(video)
            items.append(ScoredCandidate(
                candidate=candidate,
                score=0.0,
                reason=self.scorer.anonymous_reason(candidate),
            ))
        result = FeedPage(items=items, page=page, limit=limit, total=total)
        return await self._bounded(
            self.assembler.assemble(result, viewer_id, followed_ids, live), deadline
        )


feed_service = FeedService()
