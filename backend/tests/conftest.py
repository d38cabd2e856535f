"""
Shared pytest fixtures: a throwaway SQLite database per test, a seeding helper,
and an HTTP client wired to that database.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from reelrank.core.config import Settings
from reelrank.core.database import Base
from reelrank.models.models import (
    CreatorFollow,
    FeedbackAction,
    Livestream,
    User,
    UserBlock,
    Video,
    VideoBookmark,
    VideoEvent,
    VideoEventType,
    VideoFeedback,
    VideoLike,
)
from reelrank.services.feed.feed_service import FeedService
from reelrank.services.media.url_signer import UrlSigner
from reelrank.services.telemetry.telemetry_service import TelemetryService

NOW = datetime.now(timezone.utc)


class Seeder:
    """Small factory for rows the feed reads."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, *rows):
        async with self.session_factory() as db:
            db.add_all(rows)
            await db.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(self, followers: int = 0, name: str = "creator") -> User:
        return await self._add(User(id=uuid.uuid4(), display_name=name, followers_count=followers))

    async def video(
        self,
        owner: User,
        hours_ago: float = 1.0,
        views: int = 0,
        likes: int = 0,
        comments: int = 0,
        shares: int = 0,
        completions: int = 0,
        **extra,
    ) -> Video:
        vid = uuid.uuid4()
        return await self._add(Video(
            id=vid,
            user_id=owner.id,
            title=f"video {vid.hex[:6]}",
            video_url=f"https://cdn.example.com/{vid.hex}.mp4",
            views=views,
            likes=likes,
            comments_count=comments,
            shares_count=shares,
            completions_count=completions,
            created_at=NOW - timedelta(hours=hours_ago),
            **extra,
        ))

    async def videos(self, owner: User, count: int, hours_ago: float = 1.0, views: int = 0):
        """``count`` identical videos in one commit, a second apart, oldest last."""
        rows = []
        for i in range(count):
            vid = uuid.uuid4()
            rows.append(Video(
                id=vid,
                user_id=owner.id,
                title=f"video {vid.hex[:6]}",
                video_url=f"https://cdn.example.com/{vid.hex}.mp4",
                views=views,
                created_at=NOW - timedelta(hours=hours_ago, seconds=i),
            ))
        await self._add(*rows)
        return rows

    async def events(self, viewer: User, video: Video, event_type: VideoEventType, count: int = 1):
        rows = [
            VideoEvent(
                user_id=viewer.id,
                video_id=video.id,
                event_type=event_type,
                payload={},
                session_id="sess_test",
                created_at=NOW - timedelta(minutes=5),
            )
            for _ in range(count)
        ]
        await self._add(*rows)

    async def follow(self, follower: User, creator: User):
        await self._add(CreatorFollow(follower_id=follower.id, following_id=creator.id))

    async def block(self, blocker: User, blocked: User):
        await self._add(UserBlock(blocker_id=blocker.id, blocked_id=blocked.id))

    async def feedback(self, viewer: User, video: Video, action: FeedbackAction):
        await self._add(VideoFeedback(user_id=viewer.id, video_id=video.id, action=action, created_at=NOW))

    async def like(self, viewer: User, video: Video):
        await self._add(VideoLike(user_id=viewer.id, video_id=video.id))

    async def bookmark(self, viewer: User, video: Video):
        await self._add(VideoBookmark(user_id=viewer.id, video_id=video.id))

    async def live(self, creator: User, session_id: str = "live_1"):
        await self._add(Livestream(user_id=creator.id, session_id=session_id))


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reelrank.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def signer():
    return UrlSigner(
        endpoint="media.test",
        access_key="test-access",
        secret_key="test-secret",
        bucket="reelrank-media",
        secure=True,
        expiry_seconds=60,
    )


@pytest.fixture
def feed(session_factory, settings, signer):
    return FeedService(session_factory=session_factory, settings=settings, url_signer=signer)


@pytest.fixture
def telemetry(session_factory):
    return TelemetryService(session_factory=session_factory, max_batch=100)


@pytest.fixture
async def client(session_factory, feed, telemetry):
    from reelrank.api.deps import get_feed_service, get_telemetry_service
    from reelrank.core.database import get_db
    from reelrank.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_feed_service] = lambda: feed
    app.dependency_overrides[get_telemetry_service] = lambda: telemetry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_candidate():
    """Build in-memory ``Candidate`` rows for the pure ranking stages."""
    from reelrank.services.feed.candidates import Candidate

    def _make(owner_id=None, hours_ago: float = 24.0, followers=None, **counters):
        return Candidate(
            id=uuid.uuid4(),
            owner_id=owner_id or uuid.uuid4(),
            created_at=NOW - timedelta(hours=hours_ago),
            owner_followers=followers,
            **counters,
        )

    return _make
