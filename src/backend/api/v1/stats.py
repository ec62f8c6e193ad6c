"""
Subject statistics endpoints.

Reads the maintained tallies; nothing here touches the vote ledger.
Breakdowns are withheld until a subject reaches the configured
``vote.min_votes_to_show_stats`` so small samples cannot single out voters.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_config_snapshot
from core.demographics import PREFECTURES, Prefecture, prefectures_in_area
from core.exceptions import SubjectNotFoundError
from db.session import get_db
from repositories.catalog_repository import CatalogRepository
from schemas.stats import (
    PrefectureEntry,
    PrefectureMap,
    PrefectureTrendStats,
    RegionStats,
    SubjectStats,
    SubjectVoteCount,
)
from services.aggregate_maintainer import AggregateMaintainer
from services.config_store import ConfigSnapshot

router = APIRouter()


async def _require_subject(db: AsyncSession, subject_id: int) -> None:
    if await CatalogRepository(db).get_subject(subject_id) is None:
        raise SubjectNotFoundError(f"Subject {subject_id} does not exist")


def _require_prefecture(region: str) -> Prefecture:
    prefecture = PREFECTURES.get(region)
    if prefecture is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="region must be a prefecture code between 01 and 47",
        )
    return prefecture


@router.get("/subjects/{subject_id}", response_model=SubjectStats)
async def get_subject_stats(
    subject_id: int,
    config: Annotated[ConfigSnapshot, Depends(get_config_snapshot)],
    db: AsyncSession = Depends(get_db),
) -> SubjectStats:
    """Overall count plus breakdowns by accent pattern, prefecture, age, gender and time."""
    await _require_subject(db, subject_id)

    snapshot = await AggregateMaintainer(db).snapshot(subject_id)
    threshold = config.min_votes_to_show_stats
    hidden = snapshot.overall < threshold

    data = snapshot.to_dict()
    if hidden:
        for name in ("by_semantic_key", "by_region", "by_age_band", "by_gender", "by_time_bucket"):
            data[name] = []

    return SubjectStats(**data, min_votes_to_show_stats=threshold, breakdowns_hidden=hidden)


@router.get("/subjects/{subject_id}/regions", response_model=PrefectureMap)
async def get_prefecture_map(
    subject_id: int,
    config: Annotated[ConfigSnapshot, Depends(get_config_snapshot)],
    area: Optional[str] = Query(None, max_length=8, description='Broad area, e.g. "関東"'),
    db: AsyncSession = Depends(get_db),
) -> PrefectureMap:
    """
    Leading accent pattern of every prefecture that has voted on a subject.

    Prefectures below the vote threshold are listed with their total only.
    """
    await _require_subject(db, subject_id)

    summaries = await AggregateMaintainer(db).prefecture_map(subject_id)
    if area is not None:
        in_area = {p.code for p in prefectures_in_area(area)}
        summaries = [s for s in summaries if s.region in in_area]

    threshold = config.min_votes_to_show_stats
    entries = []
    for summary in summaries:
        prefecture = PREFECTURES.get(summary.region)
        if prefecture is None:
            continue
        hidden = summary.total < threshold
        entries.append(
            PrefectureEntry(
                region=summary.region,
                region_name=prefecture.name,
                area=prefecture.area,
                total=summary.total,
                top=None if hidden or summary.top is None else summary.top.to_dict(),
                by_semantic_key=[] if hidden else [e.to_dict() for e in summary.by_semantic_key],
                breakdowns_hidden=hidden,
            )
        )

    return PrefectureMap(subject_id=subject_id, min_votes_to_show_stats=threshold, prefectures=entries)


@router.get("/subjects/{subject_id}/regions/{region}", response_model=RegionStats)
async def get_region_stats(
    subject_id: int,
    region: str,
    config: Annotated[ConfigSnapshot, Depends(get_config_snapshot)],
    db: AsyncSession = Depends(get_db),
) -> RegionStats:
    """Accent pattern split inside one prefecture (code 01-47)."""
    prefecture = _require_prefecture(region)

    await _require_subject(db, subject_id)

    snapshot = await AggregateMaintainer(db).region_snapshot(subject_id, region)
    hidden = snapshot.total < config.min_votes_to_show_stats

    return RegionStats(
        subject_id=subject_id,
        region=region,
        region_name=prefecture.name,
        total=snapshot.total,
        by_semantic_key=[] if hidden else [e.to_dict() for e in snapshot.by_semantic_key],
        breakdowns_hidden=hidden,
    )


@router.get("/regions/{region}", response_model=PrefectureTrendStats)
async def get_prefecture_trends(
    region: str,
    config: Annotated[ConfigSnapshot, Depends(get_config_snapshot)],
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> PrefectureTrendStats:
    """Most-voted subjects and overall accent pattern split of one prefecture."""
    prefecture = _require_prefecture(region)

    trends = await AggregateMaintainer(db).prefecture_trends(region, limit=limit)
    hidden = trends.total < config.min_votes_to_show_stats

    top_subjects: list[SubjectVoteCount] = []
    if not hidden:
        subjects = await CatalogRepository(db).list_subjects([s.subject_id for s in trends.top_subjects])
        labels = {subject.id: subject.label for subject in subjects}
        top_subjects = [
            SubjectVoteCount(subject_id=s.subject_id, label=labels.get(s.subject_id, ""), count=s.count)
            for s in trends.top_subjects
        ]

    return PrefectureTrendStats(
        region=region,
        region_name=prefecture.name,
        area=prefecture.area,
        total=trends.total,
        top_subjects=top_subjects,
        by_semantic_key=[] if hidden else [e.to_dict() for e in trends.by_semantic_key],
        breakdowns_hidden=hidden,
    )
