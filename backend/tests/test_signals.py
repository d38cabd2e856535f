import uuid

import pytest

from reelrank.models.models import VideoEventType
from reelrank.services.feed.safety import SafetyContext, parse_exclude_ids
from reelrank.services.feed.signals import Tier, build_signals, classify_tier
from reelrank.services.feed.stores import VideoEventCounts


@pytest.mark.parametrize("total,tier", [
    (0, Tier.ZERO),
    (1, Tier.COLD),
    (9, Tier.COLD),
    (10, Tier.WARM),
    (49, Tier.WARM),
    (50, Tier.ESTABLISHED),
])
def test_classify_tier(total, tier):
    assert classify_tier(total) == tier


def test_build_signals_folds_counts():
    watched_owner, skipped_owner, followed = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    watched, skipped = uuid.uuid4(), uuid.uuid4()
    counts = {
        watched: VideoEventCounts(owner_id=watched_owner, counts={
            VideoEventType.IMPRESSION: 3,
            VideoEventType.PLAY_25PCT: 1,
            VideoEventType.PLAY_75PCT: 1,
            VideoEventType.LIKE: 1,
        }),
        skipped: VideoEventCounts(owner_id=skipped_owner, counts={
            VideoEventType.PLAY_25PCT: 2,
            VideoEventType.SKIP: 1,
        }),
    }

    viewer = build_signals(counts, frozenset({followed}))

    assert viewer.total_events == 9
    assert viewer.tier == Tier.COLD
    assert viewer.signal_for(watched).watch_pct == 75
    assert viewer.signal_for(watched).liked
    assert viewer.signal_for(skipped).skipped
    assert viewer.signal_for(uuid.uuid4()) is None
    assert viewer.preferred_creators == {watched_owner, followed}
    assert skipped_owner not in viewer.interacted_creators
    assert followed in viewer.interacted_creators


def test_no_events_is_zero_tier():
    viewer = build_signals({}, frozenset())
    assert viewer.tier == Tier.ZERO
    assert viewer.total_events == 0


class TestSafety:

    def test_exclude_ids_are_truncated_and_tolerant(self):
        ids = [str(uuid.uuid4()) for _ in range(5)]
        parsed = parse_exclude_ids(["not-a-uuid"] + ids, cap=3)
        assert parsed == {uuid.UUID(ids[0]), uuid.UUID(ids[1])}

    def test_empty_exclude_list(self):
        assert parse_exclude_ids(None, cap=200) == frozenset()

    def test_context_admits(self):
        blocked, hidden_creator, ok_creator = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        hidden_video, seen_video = uuid.uuid4(), uuid.uuid4()
        ctx = SafetyContext(
            blocked_creator_ids=frozenset({blocked}),
            suppressed_creator_ids=frozenset({hidden_creator}),
            hidden_video_ids=frozenset({hidden_video}),
            exclude_video_ids=frozenset({seen_video}),
        )

        assert ctx.admits(uuid.uuid4(), ok_creator)
        assert not ctx.admits(uuid.uuid4(), blocked)
        assert not ctx.admits(uuid.uuid4(), hidden_creator)
        assert not ctx.admits(hidden_video, ok_creator)
        assert not ctx.admits(seen_video, ok_creator)
        assert ctx.excluded_owner_ids == {blocked, hidden_creator}
        assert ctx.excluded_video_ids == {hidden_video, seen_video}
