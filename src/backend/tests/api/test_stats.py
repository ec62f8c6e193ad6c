"""
Tests for statistics API endpoints.
"""

import pytest
from httpx import AsyncClient

SUBJECT_S = 10
SUBJECT_T = 20


async def _cast_votes(session_factory, count: int, region: str = "13") -> None:
    """Record votes from distinct identities directly through the ledger."""
    from schemas.vote import Demographics
    from services.vote_ledger import VoteLedger

    async with session_factory() as session:
        ledger = VoteLedger(session)
        for i in range(count):
            await ledger.record_vote(
                f"{i:064x}",
                SUBJECT_S,
                101 if i % 2 == 0 else 102,
                Demographics(region=region, gender="female" if i % 2 else "male"),
            )


async def _cast_votes_from(
    session_factory,
    count: int,
    region: str,
    offset: int,
    subject_id: int = SUBJECT_S,
    option_id: int = 101,
) -> None:
    """Record votes from identities numbered from offset."""
    from schemas.vote import Demographics
    from services.vote_ledger import VoteLedger

    async with session_factory() as session:
        ledger = VoteLedger(session)
        for i in range(offset, offset + count):
            await ledger.record_vote(f"{i:064x}", subject_id, option_id, Demographics(region=region))


@pytest.mark.unit
class TestSubjectStats:
    """Test GET /api/v1/stats/subjects/{subject_id}."""

    async def test_breakdowns_hidden_below_threshold(
        self, client: AsyncClient, catalog, session_factory
    ) -> None:
        """Test that small samples show the total only."""
        await _cast_votes(session_factory, 3)

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}")

        data = response.json()
        assert response.status_code == 200
        assert data["overall"] == 3
        assert data["breakdowns_hidden"] is True
        assert data["by_semantic_key"] == []
        assert data["by_region"] == []

    async def test_breakdowns_shown_at_threshold(
        self, client: AsyncClient, catalog, session_factory
    ) -> None:
        await _cast_votes(session_factory, 5)

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}")

        data = response.json()
        assert data["breakdowns_hidden"] is False
        assert data["min_votes_to_show_stats"] == 5
        assert [(e["value"], e["count"]) for e in data["by_semantic_key"]] == [("nakadaka", 3), ("odaka", 2)]
        assert data["by_semantic_key"][0]["percentage"] == pytest.approx(60.0)
        assert sum(e["count"] for e in data["by_semantic_key"]) == data["overall"]
        assert data["by_region"] == [{"value": "13", "count": 5, "percentage": 100.0}]
        assert len(data["by_time_bucket"]) >= 1

    async def test_threshold_comes_from_settings_store(
        self, client: AsyncClient, catalog, session_factory
    ) -> None:
        from services.config_store import ConfigStore

        async with session_factory() as session:
            await ConfigStore(session).put("vote.min_votes_to_show_stats", 1)
        await _cast_votes(session_factory, 1)

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}")

        assert response.json()["breakdowns_hidden"] is False

    async def test_unknown_subject(self, client: AsyncClient, catalog) -> None:
        response = await client.get("/api/v1/stats/subjects/999")

        assert response.status_code == 404
        assert response.json()["error"] == "subject_not_found"


@pytest.mark.unit
class TestRegionStats:
    """Test GET /api/v1/stats/subjects/{subject_id}/regions/{region}."""

    async def test_region_split(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 6, region="27")

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}/regions/27")

        data = response.json()
        assert response.status_code == 200
        assert data["region_name"] == "大阪府"
        assert data["total"] == 6
        assert [(e["value"], e["count"]) for e in data["by_semantic_key"]] == [("nakadaka", 3), ("odaka", 3)]

    async def test_other_region_is_empty(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 6, region="27")

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}/regions/13")

        assert response.json()["total"] == 0
        assert response.json()["breakdowns_hidden"] is True

    async def test_invalid_region(self, client: AsyncClient, catalog) -> None:
        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}/regions/99")

        assert response.status_code == 422


@pytest.mark.unit
class TestPrefectureMap:
    """Test GET /api/v1/stats/subjects/{subject_id}/regions."""

    async def test_map_lists_each_prefecture(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 5, region="27")
        await _cast_votes_from(session_factory, 2, region="47", offset=100)

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}/regions")

        data = response.json()
        assert response.status_code == 200
        assert [p["region"] for p in data["prefectures"]] == ["27", "47"]
        osaka, okinawa = data["prefectures"]
        assert osaka["region_name"] == "大阪府"
        assert (osaka["top"]["value"], osaka["top"]["count"]) == ("nakadaka", 3)
        assert osaka["top"]["percentage"] == pytest.approx(60.0)
        assert okinawa["area"] == "沖縄"
        assert okinawa["total"] == 2
        assert okinawa["breakdowns_hidden"] is True
        assert okinawa["top"] is None

    async def test_map_filtered_by_area(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 5, region="27")
        await _cast_votes_from(session_factory, 2, region="13", offset=100)

        response = await client.get(f"/api/v1/stats/subjects/{SUBJECT_S}/regions", params={"area": "関東"})

        assert [p["region"] for p in response.json()["prefectures"]] == ["13"]

    async def test_unknown_subject(self, client: AsyncClient, catalog) -> None:
        response = await client.get("/api/v1/stats/subjects/999/regions")

        assert response.status_code == 404


@pytest.mark.unit
class TestPrefectureTrends:
    """Test GET /api/v1/stats/regions/{region}."""

    async def test_trends_across_subjects(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 5, region="13")
        await _cast_votes_from(session_factory, 1, region="13", offset=100, subject_id=SUBJECT_T, option_id=201)

        response = await client.get("/api/v1/stats/regions/13")

        data = response.json()
        assert response.status_code == 200
        assert data["region_name"] == "東京都"
        assert data["total"] == 6
        assert [(s["subject_id"], s["label"], s["count"]) for s in data["top_subjects"]] == [
            (SUBJECT_S, "箸", 5),
            (SUBJECT_T, "橋", 1),
        ]
        assert data["by_semantic_key"][0] == {"value": "nakadaka", "count": 3, "percentage": 50.0}

    async def test_small_prefecture_is_hidden(self, client: AsyncClient, catalog, session_factory) -> None:
        await _cast_votes(session_factory, 2, region="13")

        data = (await client.get("/api/v1/stats/regions/13")).json()

        assert data["total"] == 2
        assert data["breakdowns_hidden"] is True
        assert data["top_subjects"] == []

    async def test_invalid_region(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/stats/regions/00")

        assert response.status_code == 422
