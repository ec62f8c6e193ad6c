"""
Vote aggregate maintenance.

Keeps per-subject tallies (overall, per semantic key, prefecture, age band,
gender, time bucket, and prefecture x semantic key) in step with the vote
ledger. Tallies are a projection: rebuild() recomputes them from the votes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from models.aggregate import OVERALL_VALUE, Dimension, VoteAggregate
from models.subject import as_utc
from models.vote import Vote
from repositories.aggregate_repository import AggregateRepository
from repositories.vote_repository import VoteRepository

logger = structlog.get_logger(__name__)

TIME_BUCKET_FORMATS = {
    "hour": "%Y-%m-%dT%H:00Z",
    "day": "%Y-%m-%d",
}


def time_bucket(moment: datetime, granularity: str = "hour") -> str:
    """UTC bucket label for a timestamp."""
    moment = as_utc(moment).astimezone(timezone.utc)  # type: ignore[union-attr]
    return moment.strftime(TIME_BUCKET_FORMATS[granularity])


@dataclass(frozen=True)
class AcceptedVote:
    """The fields of a ledger-accepted vote that drive the tallies."""

    vote_id: str
    subject_id: int
    semantic_key: str
    created_at: datetime
    region: Optional[str] = None
    age_band: Optional[str] = None
    gender: Optional[str] = None

    @classmethod
    def from_model(cls, vote: Vote) -> "AcceptedVote":
        return cls(
            vote_id=vote.id,
            subject_id=vote.subject_id,
            semantic_key=vote.semantic_key,
            created_at=vote.created_at,
            region=vote.region,
            age_band=vote.age_band,
            gender=vote.gender,
        )


@dataclass
class BreakdownEntry:
    value: str
    count: int
    percentage: float

    def to_dict(self) -> dict:
        return {"value": self.value, "count": self.count, "percentage": self.percentage}


@dataclass
class SubjectSnapshot:
    """Tallies of one subject as seen at read time."""

    subject_id: int
    overall: int
    by_semantic_key: list[BreakdownEntry] = field(default_factory=list)
    by_region: list[BreakdownEntry] = field(default_factory=list)
    by_age_band: list[BreakdownEntry] = field(default_factory=list)
    by_gender: list[BreakdownEntry] = field(default_factory=list)
    by_time_bucket: list[BreakdownEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "overall": self.overall,
            "by_semantic_key": [e.to_dict() for e in self.by_semantic_key],
            "by_region": [e.to_dict() for e in self.by_region],
            "by_age_band": [e.to_dict() for e in self.by_age_band],
            "by_gender": [e.to_dict() for e in self.by_gender],
            "by_time_bucket": [e.to_dict() for e in self.by_time_bucket],
        }


@dataclass
class RegionSnapshot:
    """Semantic key split inside one prefecture."""

    subject_id: int
    region: str
    total: int
    by_semantic_key: list[BreakdownEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "region": self.region,
            "total": self.total,
            "by_semantic_key": [e.to_dict() for e in self.by_semantic_key],
        }


@dataclass
class PrefectureSummary:
    """One prefecture's entry in a subject's prefecture map."""

    region: str
    total: int
    by_semantic_key: list[BreakdownEntry] = field(default_factory=list)

    @property
    def top(self) -> Optional[BreakdownEntry]:
        return self.by_semantic_key[0] if self.by_semantic_key else None


@dataclass
class SubjectCount:
    subject_id: int
    count: int


@dataclass
class PrefectureTrends:
    """Votes cast from one prefecture across all subjects."""

    region: str
    total: int
    top_subjects: list[SubjectCount] = field(default_factory=list)
    by_semantic_key: list[BreakdownEntry] = field(default_factory=list)


def percentage(count: int, total: int) -> float:
    """count / total * 100, or 0 when there is nothing to divide by."""
    if total <= 0:
        return 0.0
    return count / total * 100


def ranked(counts: dict[str, int], total: int) -> list[BreakdownEntry]:
    """Entries by count descending, ties broken by ascending value."""
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [BreakdownEntry(value, count, percentage(count, total)) for value, count in ordered]


def chronological(counts: dict[str, int], total: int) -> list[BreakdownEntry]:
    return [
        BreakdownEntry(value, count, percentage(count, total))
        for value, count in sorted(counts.items())
    ]


def split_by_region(rows: list[VoteAggregate]) -> dict[str, dict[str, int]]:
    """Group "<region>:<semantic key>" counters into {region: {key: count}}."""
    split: dict[str, dict[str, int]] = {}
    for row in rows:
        if row.vote_count <= 0:
            continue
        region, _, key = row.dimension_value.partition(":")
        split.setdefault(region, {})[key] = row.vote_count
    return split


class AggregateMaintainer:
    """
    Sole writer of vote aggregates.

    apply() runs inside the ledger's transaction, so a vote and its counter
    increments commit or roll back together.
    """

    def __init__(self, db: AsyncSession, time_bucket_granularity: Optional[str] = None):
        self.db = db
        self.aggregates = AggregateRepository(db)
        self.granularity = time_bucket_granularity or settings.STATS_TIME_BUCKET

    def counter_keys(self, vote: AcceptedVote) -> list[tuple[str, str]]:
        """The (dimension, value) counters one vote increments."""
        keys = [
            (Dimension.OVERALL.value, OVERALL_VALUE),
            (Dimension.SEMANTIC_KEY.value, vote.semantic_key),
            (Dimension.TIME_BUCKET.value, time_bucket(vote.created_at, self.granularity)),
        ]
        if vote.region:
            keys.append((Dimension.REGION.value, vote.region))
            keys.append((Dimension.REGION_SEMANTIC_KEY.value, f"{vote.region}:{vote.semantic_key}"))
        if vote.age_band:
            keys.append((Dimension.AGE_BAND.value, vote.age_band))
        if vote.gender:
            keys.append((Dimension.GENDER.value, vote.gender))
        return keys

    async def apply(self, vote: AcceptedVote) -> bool:
        """
        Count one accepted vote.

        Idempotent per vote id: a vote that was already applied is skipped.
        Does not commit; the caller owns the transaction.

        Returns:
            True if the counters were incremented
        """
        if not await self.aggregates.mark_applied(vote.vote_id, vote.subject_id):
            logger.info("aggregate_apply_skipped", vote_id=vote.vote_id, reason="already_applied")
            return False

        await self.aggregates.increment(vote.subject_id, self.counter_keys(vote))
        return True

    async def snapshot(self, subject_id: int) -> SubjectSnapshot:
        """Read a subject's tallies with percentages of the overall count."""
        rows = await self.aggregates.list_by_subject(subject_id)
        grouped = self._group(rows)

        overall = grouped.get(Dimension.OVERALL.value, {}).get(OVERALL_VALUE, 0)

        return SubjectSnapshot(
            subject_id=subject_id,
            overall=overall,
            by_semantic_key=ranked(grouped.get(Dimension.SEMANTIC_KEY.value, {}), overall),
            by_region=ranked(grouped.get(Dimension.REGION.value, {}), overall),
            by_age_band=ranked(grouped.get(Dimension.AGE_BAND.value, {}), overall),
            by_gender=ranked(grouped.get(Dimension.GENDER.value, {}), overall),
            by_time_bucket=chronological(grouped.get(Dimension.TIME_BUCKET.value, {}), overall),
        )

    async def region_snapshot(self, subject_id: int, region: str) -> RegionSnapshot:
        """Semantic key split of one prefecture, percentages of that prefecture's total."""
        rows = await self.aggregates.list_by_subject(
            subject_id, dimension=Dimension.REGION_SEMANTIC_KEY.value
        )
        counts = split_by_region(rows).get(region, {})
        total = sum(counts.values())
        return RegionSnapshot(
            subject_id=subject_id,
            region=region,
            total=total,
            by_semantic_key=ranked(counts, total),
        )

    async def prefecture_map(self, subject_id: int) -> list[PrefectureSummary]:
        """
        Semantic key split of every prefecture that voted on a subject.

        Entries are ordered by prefecture code; percentages are of each
        prefecture's own total, and an entry's top is its leading key.
        """
        rows = await self.aggregates.list_by_subject(
            subject_id, dimension=Dimension.REGION_SEMANTIC_KEY.value
        )
        summaries = []
        for region, counts in sorted(split_by_region(rows).items()):
            total = sum(counts.values())
            summaries.append(PrefectureSummary(region, total, ranked(counts, total)))
        return summaries

    async def prefecture_trends(self, region: str, limit: int = 10) -> PrefectureTrends:
        """
        What one prefecture votes on and how, across all subjects.

        Args:
            region: Prefecture code
            limit: Number of most-voted subjects to return
        """
        region_rows = await self.aggregates.list_by_dimension(Dimension.REGION.value, value=region)
        subject_counts = sorted(
            (SubjectCount(row.subject_id, row.vote_count) for row in region_rows if row.vote_count > 0),
            key=lambda entry: (-entry.count, entry.subject_id),
        )
        total = sum(entry.count for entry in subject_counts)

        key_rows = await self.aggregates.list_by_dimension(
            Dimension.REGION_SEMANTIC_KEY.value, value_prefix=f"{region}:"
        )
        key_counts: dict[str, int] = {}
        for row in key_rows:
            if row.vote_count > 0:
                key = row.dimension_value.partition(":")[2]
                key_counts[key] = key_counts.get(key, 0) + row.vote_count

        return PrefectureTrends(
            region=region,
            total=total,
            top_subjects=subject_counts[:limit],
            by_semantic_key=ranked(key_counts, total),
        )

    async def rebuild(self, subject_id: int) -> int:
        """
        Recompute a subject's tallies from the ledger and commit.

        Returns:
            Number of votes replayed
        """
        await self.aggregates.delete_for_subject(subject_id)

        replayed = 0
        async for vote in VoteRepository(self.db).iter_by_subject(subject_id):
            if await self.apply(AcceptedVote.from_model(vote)):
                replayed += 1

        await self.db.commit()
        logger.info("aggregates_rebuilt", subject_id=subject_id, votes=replayed)
        return replayed

    @staticmethod
    def _group(rows: list[VoteAggregate]) -> dict[str, dict[str, int]]:
        grouped: dict[str, dict[str, int]] = {}
        for row in rows:
            if row.vote_count <= 0:
                continue
            grouped.setdefault(row.dimension, {})[row.dimension_value] = row.vote_count
        return grouped
