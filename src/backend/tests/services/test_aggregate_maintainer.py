"""
Tests for vote aggregate maintenance.
"""

from datetime import datetime, timezone

import pytest

SUBJECT_S = 10
SUBJECT_T = 20


def _vote(
    n: int,
    semantic_key: str = "heiban",
    subject_id: int = SUBJECT_S,
    created_at: datetime = datetime(2025, 4, 1, 9, 30, tzinfo=timezone.utc),
    **demographics,
):
    from services.aggregate_maintainer import AcceptedVote

    return AcceptedVote(
        vote_id=f"vote-{subject_id}-{n}",
        subject_id=subject_id,
        semantic_key=semantic_key,
        created_at=created_at,
        **demographics,
    )


@pytest.fixture
def maintainer(db_session):
    from services.aggregate_maintainer import AggregateMaintainer

    return AggregateMaintainer(db_session, time_bucket_granularity="hour")


@pytest.mark.unit
class TestTimeBucket:
    """Tests for time bucket labels."""

    def test_hour_and_day(self):
        from services.aggregate_maintainer import time_bucket

        moment = datetime(2025, 4, 1, 9, 59, 59, tzinfo=timezone.utc)

        assert time_bucket(moment, "hour") == "2025-04-01T09:00Z"
        assert time_bucket(moment, "day") == "2025-04-01"

    def test_converts_to_utc(self):
        from datetime import timedelta

        from services.aggregate_maintainer import time_bucket

        tokyo = timezone(timedelta(hours=9))
        moment = datetime(2025, 4, 2, 8, 15, tzinfo=tokyo)

        assert time_bucket(moment, "hour") == "2025-04-01T23:00Z"

    def test_naive_datetimes_are_utc(self):
        from services.aggregate_maintainer import time_bucket

        assert time_bucket(datetime(2025, 4, 1, 9, 30), "hour") == "2025-04-01T09:00Z"


@pytest.mark.unit
class TestCounterKeys:
    """Tests for the counters one vote touches."""

    def test_minimal_vote(self, maintainer):
        keys = maintainer.counter_keys(_vote(1))

        assert keys == [
            ("overall", "*"),
            ("semantic_key", "heiban"),
            ("time_bucket", "2025-04-01T09:00Z"),
        ]

    def test_full_demographics(self, maintainer):
        keys = set(maintainer.counter_keys(_vote(1, region="27", age_band="40s", gender="male")))

        assert ("region", "27") in keys
        assert ("region_semantic_key", "27:heiban") in keys
        assert ("age_band", "40s") in keys
        assert ("gender", "male") in keys


@pytest.mark.unit
class TestApply:
    """Tests for apply and snapshot."""

    async def test_apply_counts_once_per_vote(self, maintainer, db_session):
        """Test that applying the same vote twice counts it once."""
        vote = _vote(1)

        assert await maintainer.apply(vote) is True
        assert await maintainer.apply(vote) is False
        await db_session.commit()

        snapshot = await maintainer.snapshot(SUBJECT_S)
        assert snapshot.overall == 1

    async def test_sums_match_overall(self, maintainer, db_session):
        """Test that per-key counts always add up to overall."""
        votes = [
            _vote(1, "heiban", region="13", gender="female"),
            _vote(2, "heiban", region="13"),
            _vote(3, "atamadaka", region="27", age_band="20s"),
            _vote(4, "odaka"),
            _vote(5, "heiban", region="27"),
        ]
        for vote in votes:
            await maintainer.apply(vote)
            await db_session.commit()

            snapshot = await maintainer.snapshot(SUBJECT_S)
            assert sum(e.count for e in snapshot.by_semantic_key) == snapshot.overall
            assert sum(e.count for e in snapshot.by_time_bucket) == snapshot.overall

        snapshot = await maintainer.snapshot(SUBJECT_S)
        assert snapshot.overall == 5
        assert [(e.value, e.count) for e in snapshot.by_semantic_key] == [
            ("heiban", 3),
            ("atamadaka", 1),
            ("odaka", 1),
        ]
        assert snapshot.by_semantic_key[0].percentage == pytest.approx(60.0)
        assert [(e.value, e.count) for e in snapshot.by_region] == [("13", 2), ("27", 2)]
        assert snapshot.by_gender[0].percentage == pytest.approx(20.0)

    async def test_ties_sorted_by_value(self, maintainer, db_session):
        """Test that equal counts are ordered by ascending value."""
        for n, key in enumerate(["odaka", "atamadaka", "nakadaka"]):
            await maintainer.apply(_vote(n, key))
        await db_session.commit()

        snapshot = await maintainer.snapshot(SUBJECT_S)

        assert [e.value for e in snapshot.by_semantic_key] == ["atamadaka", "nakadaka", "odaka"]

    async def test_time_buckets_chronological(self, maintainer, db_session):
        """Test that time buckets are ordered by time, not by count."""
        await maintainer.apply(_vote(1, created_at=datetime(2025, 4, 1, 11, 0, tzinfo=timezone.utc)))
        await maintainer.apply(_vote(2, created_at=datetime(2025, 4, 1, 11, 5, tzinfo=timezone.utc)))
        await maintainer.apply(_vote(3, created_at=datetime(2025, 4, 1, 9, 0, tzinfo=timezone.utc)))
        await db_session.commit()

        snapshot = await maintainer.snapshot(SUBJECT_S)

        assert [(e.value, e.count) for e in snapshot.by_time_bucket] == [
            ("2025-04-01T09:00Z", 1),
            ("2025-04-01T11:00Z", 2),
        ]

    async def test_empty_subject(self, maintainer):
        """Test that a subject without votes reports zeros, not errors."""
        snapshot = await maintainer.snapshot(SUBJECT_S)

        assert snapshot.overall == 0
        assert snapshot.by_semantic_key == []
        assert snapshot.to_dict()["by_region"] == []

    async def test_subjects_are_independent(self, maintainer, db_session):
        await maintainer.apply(_vote(1, subject_id=SUBJECT_S))
        await maintainer.apply(_vote(1, subject_id=SUBJECT_T))
        await maintainer.apply(_vote(2, subject_id=SUBJECT_T))
        await db_session.commit()

        assert (await maintainer.snapshot(SUBJECT_S)).overall == 1
        assert (await maintainer.snapshot(SUBJECT_T)).overall == 2


@pytest.mark.unit
class TestRegionSnapshot:
    """Tests for the per-prefecture split."""

    async def test_percentages_relative_to_region(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "heiban", region="13"))
        await maintainer.apply(_vote(2, "heiban", region="13"))
        await maintainer.apply(_vote(3, "atamadaka", region="13"))
        await maintainer.apply(_vote(4, "atamadaka", region="27"))
        await db_session.commit()

        snapshot = await maintainer.region_snapshot(SUBJECT_S, "13")

        assert snapshot.total == 3
        assert [(e.value, e.count) for e in snapshot.by_semantic_key] == [("heiban", 2), ("atamadaka", 1)]
        assert snapshot.by_semantic_key[0].percentage == pytest.approx(200 / 3)

    async def test_region_without_votes(self, maintainer):
        snapshot = await maintainer.region_snapshot(SUBJECT_S, "01")

        assert snapshot.total == 0
        assert snapshot.by_semantic_key == []


@pytest.mark.unit
class TestPrefectureMap:
    """Tests for the all-prefecture split of one subject."""

    async def test_every_prefecture_in_code_order(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "heiban", region="27"))
        await maintainer.apply(_vote(2, "odaka", region="27"))
        await maintainer.apply(_vote(3, "odaka", region="27"))
        await maintainer.apply(_vote(4, "atamadaka", region="13"))
        await maintainer.apply(_vote(5, "heiban"))
        await db_session.commit()

        summaries = await maintainer.prefecture_map(SUBJECT_S)

        assert [(s.region, s.total) for s in summaries] == [("13", 1), ("27", 3)]
        osaka = summaries[1]
        assert (osaka.top.value, osaka.top.count) == ("odaka", 2)
        assert osaka.top.percentage == pytest.approx(200 / 3)
        assert sum(e.count for e in osaka.by_semantic_key) == osaka.total

    async def test_tied_prefecture_top_is_deterministic(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "odaka", region="01"))
        await maintainer.apply(_vote(2, "heiban", region="01"))
        await db_session.commit()

        (hokkaido,) = await maintainer.prefecture_map(SUBJECT_S)

        assert hokkaido.top.value == "heiban"
        assert hokkaido.top.percentage == pytest.approx(50.0)

    async def test_subject_without_regions(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "heiban"))
        await db_session.commit()

        assert await maintainer.prefecture_map(SUBJECT_S) == []


@pytest.mark.unit
class TestPrefectureTrends:
    """Tests for one prefecture across subjects."""

    async def test_subjects_and_keys_across_subjects(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "heiban", region="13"))
        await maintainer.apply(_vote(2, "odaka", region="13"))
        await maintainer.apply(_vote(1, "heiban", subject_id=SUBJECT_T, region="13"))
        await maintainer.apply(_vote(2, "heiban", subject_id=SUBJECT_T, region="13"))
        await maintainer.apply(_vote(3, "heiban", subject_id=SUBJECT_T, region="13"))
        await maintainer.apply(_vote(4, "atamadaka", subject_id=SUBJECT_T, region="27"))
        await db_session.commit()

        trends = await maintainer.prefecture_trends("13")

        assert trends.total == 5
        assert [(s.subject_id, s.count) for s in trends.top_subjects] == [(SUBJECT_T, 3), (SUBJECT_S, 2)]
        assert [(e.value, e.count) for e in trends.by_semantic_key] == [("heiban", 4), ("odaka", 1)]
        assert trends.by_semantic_key[0].percentage == pytest.approx(80.0)

    async def test_limit(self, maintainer, db_session):
        await maintainer.apply(_vote(1, "heiban", region="13"))
        await maintainer.apply(_vote(1, "heiban", subject_id=SUBJECT_T, region="13"))
        await db_session.commit()

        trends = await maintainer.prefecture_trends("13", limit=1)

        assert len(trends.top_subjects) == 1
        assert trends.total == 2

    async def test_prefecture_without_votes(self, maintainer):
        trends = await maintainer.prefecture_trends("47")

        assert trends.total == 0
        assert trends.top_subjects == []
        assert trends.by_semantic_key == []


@pytest.mark.unit
class TestRebuild:
    """Tests for rebuilding tallies from the ledger."""

    async def test_rebuild_matches_ledger(self, catalog, db_session, maintainer):
        """Test that rebuild repairs drifted counters."""
        from repositories.aggregate_repository import AggregateRepository
        from services.vote_ledger import VoteLedger

        ledger = VoteLedger(db_session, maintainer=maintainer)
        for i in range(4):
            await ledger.record_vote(f"{i:064x}", SUBJECT_S, 101 if i < 3 else 102)

        # Simulate drift
        await AggregateRepository(db_session).increment(SUBJECT_S, [("overall", "*")], amount=5)
        await db_session.commit()
        assert (await maintainer.snapshot(SUBJECT_S)).overall == 9

        replayed = await maintainer.rebuild(SUBJECT_S)

        snapshot = await maintainer.snapshot(SUBJECT_S)
        assert replayed == 4
        assert snapshot.overall == 4
        assert {e.value: e.count for e in snapshot.by_semantic_key} == {"nakadaka": 3, "odaka": 1}

    async def test_rebuild_is_repeatable(self, catalog, db_session, maintainer):
        from services.vote_ledger import VoteLedger

        await VoteLedger(db_session, maintainer=maintainer).record_vote("a" * 64, SUBJECT_S, 101)

        assert await maintainer.rebuild(SUBJECT_S) == 1
        assert await maintainer.rebuild(SUBJECT_S) == 1
        assert (await maintainer.snapshot(SUBJECT_S)).overall == 1


@pytest.mark.unit
class TestPercentage:
    def test_zero_total(self):
        from services.aggregate_maintainer import percentage

        assert percentage(0, 0) == 0.0
        assert percentage(3, 4) == 75.0
