import asyncio
from collections import Counter

import pytest

from reelrank.core.config import Settings, get_settings
from reelrank.models.models import FeedbackAction, VideoEventType
from reelrank.services.feed.feed_service import FeedRankingError, FeedTimeoutError

PERSONALIZED = "/api/v1/feed/personalized"
TRENDING = "/api/v1/feed/trending"

PERSONALIZED_REASONS = {
    "from_followed_creator", "because_you_liked_similar", "new_creator_spotlight",
    "trending_in_your_area", "popular_this_week",
}
TRENDING_REASONS = {
    "viral_shares", "high_completion", "rapid_engagement", "rising_creator", "popular_this_week",
}


def _ids(body):
    return [item["id"] for item in body["data"]]


def _headers(user):
    return {"X-Viewer-Id": str(user.id)}


async def _give_history(seed, viewer, count):
    """``count`` impressions on a throwaway creator's video."""
    if count:
        video = await seed.video(await seed.user(name="history"), hours_ago=200, views=50)
        await seed.events(viewer, video, VideoEventType.IMPRESSION, count)


# ── Anonymous ────────────────────────────────────────────────────────────

async def test_anonymous_feed_is_newest_first(client, seed):
    creator = await seed.user()
    videos = [await seed.video(creator, hours_ago=h) for h in (5, 1, 3, 2, 4)]

    resp = await client.get(PERSONALIZED)

    assert resp.status_code == 200
    body = resp.json()
    newest_first = sorted(videos, key=lambda v: v.created_at, reverse=True)
    assert _ids(body) == [str(v.id) for v in newest_first]
    assert {item["recommendation_reason"] for item in body["data"]} == {"new_creator_spotlight"}
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 5, "total_pages": 1, "has_more": False}


async def test_anonymous_pagination_and_exclude_ids(client, seed):
    creator = await seed.user()
    videos = [await seed.video(creator, hours_ago=h, views=500) for h in range(1, 6)]

    first = (await client.get(PERSONALIZED, params={"limit": 2})).json()
    last = (await client.get(PERSONALIZED, params={"limit": 2, "page": 3})).json()
    excluded = (await client.get(PERSONALIZED, params={"exclude_ids": f"{videos[0].id},{videos[1].id}"})).json()

    assert first["pagination"]["total_pages"] == 3
    assert first["pagination"]["has_more"] is True
    assert _ids(first) == [str(videos[0].id), str(videos[1].id)]
    assert last["pagination"]["has_more"] is False
    assert _ids(last) == [str(videos[4].id)]
    assert _ids(excluded) == [str(v.id) for v in videos[2:]]
    assert excluded["data"][0]["recommendation_reason"] == "popular_this_week"


# ── Safety ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("history", [0, 3, 20, 60])
async def test_safety_holds_on_every_path(client, seed, history):
    viewer = await seed.user(name="viewer")
    i_blocked = await seed.user(name="i_blocked")
    blocked_me = await seed.user(name="blocked_me")
    hidden_creator = await seed.user(name="hidden")
    ok = await seed.user(name="ok")
    await seed.block(viewer, i_blocked)
    await seed.block(blocked_me, viewer)

    forbidden = []
    for creator in (i_blocked, blocked_me, hidden_creator):
        for h in (1, 2):
            forbidden.append(await seed.video(creator, hours_ago=h, views=50))
    await seed.feedback(viewer, forbidden[-1], FeedbackAction.HIDE_CREATOR)

    not_interested = await seed.video(ok, hours_ago=3, views=50)
    reported = await seed.video(ok, hours_ago=4, views=50)
    seen = await seed.video(ok, hours_ago=5, views=50)
    allowed = await seed.video(ok, hours_ago=6, views=50)
    await seed.feedback(viewer, not_interested, FeedbackAction.NOT_INTERESTED)
    await seed.feedback(viewer, reported, FeedbackAction.REPORT)
    forbidden += [not_interested, reported, seen]

    await _give_history(seed, viewer, history)

    params = {"limit": 50, "exclude_ids": str(seen.id)}
    personalized = (await client.get(PERSONALIZED, params=params, headers=_headers(viewer))).json()
    trending = (await client.get(TRENDING, params=params, headers=_headers(viewer))).json()

    forbidden_ids = {str(v.id) for v in forbidden}
    for body in (personalized, trending):
        assert not forbidden_ids & set(_ids(body))
        assert str(allowed.id) in _ids(body)


async def test_prolific_blocked_creator_does_not_starve_the_pool(client, seed):
    viewer = await seed.user(name="viewer")
    blocked = await seed.user(name="spammer")
    await seed.block(viewer, blocked)
    await seed.videos(blocked, 100, hours_ago=5, views=500)
    admissible = [await seed.video(await seed.user(), hours_ago=10 + h, views=50) for h in range(5)]
    await _give_history(seed, viewer, 60)

    body = (await client.get(PERSONALIZED, params={"limit": 20}, headers=_headers(viewer))).json()

    ids = set(_ids(body))
    assert {str(v.id) for v in admissible} <= ids
    assert str(blocked.id) not in {item["user_id"] for item in body["data"]}
    assert body["pagination"]["total"] == 6


async def test_hide_sound_does_not_suppress(client, seed):
    viewer = await seed.user()
    video = await seed.video(await seed.user(), views=50)
    await seed.feedback(viewer, video, FeedbackAction.HIDE_SOUND)

    body = (await client.get(PERSONALIZED, headers=_headers(viewer))).json()

    assert _ids(body) == [str(video.id)]


# ── Personalized ranking ─────────────────────────────────────────────────

async def test_personalized_diversity_cap(client, seed):
    viewer = await seed.user()
    prolific = await seed.user(name="prolific")
    for h in range(1, 7):
        await seed.video(prolific, hours_ago=h, views=5000, likes=500)
    for h in range(1, 11):
        await seed.video(await seed.user(), hours_ago=h, views=200)
    await _give_history(seed, viewer, 60)

    body = (await client.get(PERSONALIZED, params={"limit": 10}, headers=_headers(viewer))).json()

    per_creator = Counter(item["user_id"] for item in body["data"])
    assert len(body["data"]) == 10
    assert max(per_creator.values()) <= 2
    assert per_creator[str(prolific.id)] == 2
    assert {item["recommendation_reason"] for item in body["data"]} <= PERSONALIZED_REASONS


async def test_cold_viewer_sees_unfamiliar_creators(client, seed):
    viewer = await seed.user()
    favourite = await seed.user(name="favourite")
    watched = await seed.video(favourite, hours_ago=1, views=800, likes=80)
    for h in range(2, 7):
        await seed.video(favourite, hours_ago=h, views=800, likes=80)
    for h in range(1, 13):
        await seed.video(await seed.user(), hours_ago=h * 2, views=20)
    await seed.events(viewer, watched, VideoEventType.PLAY_75PCT, 5)

    body = (await client.get(PERSONALIZED, params={"limit": 20}, headers=_headers(viewer))).json()

    unfamiliar = [item for item in body["data"] if item["user_id"] != str(favourite.id)]
    familiar = [item for item in body["data"] if item["user_id"] == str(favourite.id)]
    assert len(unfamiliar) >= 10
    assert all(item["recommendation_reason"] == "new_creator_spotlight" for item in unfamiliar)
    assert {item["recommendation_reason"] for item in familiar} == {"because_you_liked_similar"}


async def test_followed_creator_ranks_above_twin(client, seed):
    viewer = await seed.user()
    followed = await seed.user(name="followed")
    stranger = await seed.user(name="stranger")
    await seed.follow(viewer, followed)
    mine = await seed.video(followed, hours_ago=2, views=500, likes=50, comments=10)
    twin = await seed.video(stranger, hours_ago=2, views=500, likes=50, comments=10)
    await _give_history(seed, viewer, 60)

    body = (await client.get(PERSONALIZED, headers=_headers(viewer))).json()

    by_id = {item["id"]: item for item in body["data"]}
    ids = _ids(body)
    assert ids.index(str(mine.id)) < ids.index(str(twin.id))
    assert by_id[str(mine.id)]["recommendation_reason"] == "from_followed_creator"
    assert by_id[str(mine.id)]["is_following"] is True
    assert by_id[str(mine.id)]["score"] > by_id[str(twin.id)]["score"]


async def test_personalized_total_is_stable_across_pages(client, seed):
    viewer = await seed.user()
    for h in range(1, 31):
        await seed.video(await seed.user(), hours_ago=h, views=100)
    await _give_history(seed, viewer, 60)

    pages = [
        (await client.get(PERSONALIZED, params={"limit": 10, "page": p}, headers=_headers(viewer))).json()
        for p in (1, 2, 3)
    ]

    assert {body["pagination"]["total"] for body in pages} == {31}
    assert {body["pagination"]["total_pages"] for body in pages} == {4}
    assert all(body["pagination"]["has_more"] for body in pages)
    assert len({i for body in pages for i in _ids(body)}) == 30


async def test_page_flags_and_live_status(client, seed):
    viewer = await seed.user()
    creator = await seed.user(name="streamer")
    liked = await seed.video(creator, hours_ago=1)
    saved = await seed.video(creator, hours_ago=2)
    await seed.like(viewer, liked)
    await seed.bookmark(viewer, saved)
    await seed.live(creator, "live_abc")

    body = (await client.get(PERSONALIZED, headers=_headers(viewer))).json()

    first, second = body["data"]
    assert first["is_liked"] is True and first["is_bookmarked"] is False
    assert second["is_bookmarked"] is True and second["is_liked"] is False
    assert first["is_live"] is True
    assert first["livestream_session_id"] == "live_abc"
    assert first["user"]["display_name"] == "streamer"


# ── Trending ─────────────────────────────────────────────────────────────

async def test_trending_quality_gate_and_window(client, seed):
    creator = await seed.user(followers=10)
    fresh = await seed.video(creator, hours_ago=3, views=100, likes=20)
    await seed.video(await seed.user(), hours_ago=3, views=5, likes=900, shares=5)
    await seed.video(await seed.user(), hours_ago=24 * 8, views=10_000)

    body = (await client.get(TRENDING)).json()

    assert _ids(body) == [str(fresh.id)]
    assert body["data"][0]["recommendation_reason"] in TRENDING_REASONS


async def test_trending_cap_and_locale_filters(client, seed):
    prolific = await seed.user(name="prolific")
    for h in range(1, 6):
        await seed.video(prolific, hours_ago=h, views=1000, country="NG", language="en")
    local = await seed.video(await seed.user(), hours_ago=1, views=30, country="NG", language="yo")
    await seed.video(await seed.user(), hours_ago=1, views=30, country="KE", language="en")

    nigeria = (await client.get(TRENDING, params={"country": "NG"})).json()
    yoruba = (await client.get(TRENDING, params={"language": "yo"})).json()

    per_creator = Counter(item["user_id"] for item in nigeria["data"])
    assert per_creator[str(prolific.id)] == 3
    assert len(nigeria["data"]) == 4
    assert _ids(yoruba) == [str(local.id)]


async def test_trending_scores_every_eligible_video(client, seed):
    crowd = await seed.user(name="crowd")
    await seed.videos(crowd, 600, hours_ago=4.5, views=10)
    weak = [await seed.video(await seed.user(), hours_ago=h, views=10) for h in (1, 2, 3)]
    viral = await seed.video(
        await seed.user(followers=5), hours_ago=5, views=5000, likes=900, shares=800, completions=3000,
    )

    body = (await client.get(TRENDING)).json()

    ids = _ids(body)
    assert ids[0] == str(viral.id)
    assert {str(v.id) for v in weak} <= set(ids)
    assert body["data"][0]["recommendation_reason"] == "viral_shares"


# ── Failures ─────────────────────────────────────────────────────────────

async def _slow(*args, **kwargs):
    await asyncio.sleep(1)
    return []


async def test_slow_read_times_out(feed, seed, monkeypatch):
    viewer = await seed.user()
    monkeypatch.setattr(feed.content_store, "recent_videos", _slow)
    feed.settings = Settings(feed_read_timeout_seconds=0.05)

    with pytest.raises(FeedTimeoutError):
        await feed.personalized_feed(viewer.id)


async def test_timeout_maps_to_504(client, feed, monkeypatch):
    monkeypatch.setattr(feed.content_store, "trending_rows", _slow)
    feed.settings = Settings(feed_read_timeout_seconds=0.05)

    resp = await client.get(TRENDING)

    assert resp.status_code == 504


async def test_pipeline_error_fails_whole_request(client, feed, seed, monkeypatch):
    viewer = await seed.user()
    await seed.video(await seed.user())
    await _give_history(seed, viewer, 12)

    def explode(*args, **kwargs):
        raise RuntimeError("scorer blew up")

    monkeypatch.setattr(feed.scorer, "rank", explode)

    with pytest.raises(FeedRankingError):
        await feed.personalized_feed(viewer.id)
    resp = await client.get(PERSONALIZED, headers=_headers(viewer))
    assert resp.status_code == 500


async def test_request_validation(client):
    assert (await client.get(PERSONALIZED, params={"limit": 51})).status_code == 422
    assert (await client.get(PERSONALIZED, params={"page": 0})).status_code == 422
    assert (await client.get(PERSONALIZED, headers={"X-Viewer-Id": "not-a-uuid"})).status_code == 400


async def test_page_size_defaults_and_bounds_come_from_settings(client, seed):
    settings = get_settings()
    creator = await seed.user()
    await seed.videos(creator, settings.feed_default_page_size + 5)

    body = (await client.get(PERSONALIZED)).json()
    too_big = await client.get(TRENDING, params={"limit": settings.feed_max_page_size + 1})
    largest = await client.get(TRENDING, params={"limit": settings.feed_max_page_size})

    assert len(body["data"]) == settings.feed_default_page_size
    assert body["pagination"]["limit"] == settings.feed_default_page_size
    assert too_big.status_code == 422
    assert largest.status_code == 200
