"""
Aggregate repository: atomic counter upserts for vote tallies.

Counters are only ever changed with INSERT ... ON CONFLICT DO UPDATE
SET vote_count = vote_count + 1, which is atomic per row on both PostgreSQL
and SQLite. Increments commute, so concurrent votes land in any order.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from models.aggregate import AppliedVote, VoteAggregate

_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class AggregateRepository:
    """Repository for vote aggregate database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self) -> Callable[..., Any]:
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Atomic upserts are not supported on {dialect}") from None

    async def mark_applied(self, vote_id: str, subject_id: int) -> bool:
        """
        Record that a vote has been counted.

        Returns:
            True if this call recorded it, False if it was already recorded
        """
        insert = self._insert()
        stmt = (
            insert(AppliedVote)
            .values(
                vote_id=vote_id,
                subject_id=subject_id,
                applied_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["vote_id"])
        )
        result = await self.db.execute(stmt)
        return (getattr(result, "rowcount", 0) or 0) > 0

    async def increment(
        self,
        subject_id: int,
        keys: Iterable[tuple[str, str]],
        amount: int = 1,
    ) -> None:
        """
        Increment several counters of one subject in a single statement.

        Args:
            subject_id: Subject the counters belong to
            keys: Distinct (dimension, dimension_value) pairs
            amount: Increment applied to each counter
        """
        now = datetime.now(timezone.utc)
        rows = [
            {
                "subject_id": subject_id,
                "dimension": dimension,
                "dimension_value": value,
                "vote_count": amount,
                "updated_at": now,
            }
            for dimension, value in keys
        ]
        if not rows:
            return

        insert = self._insert()
        stmt = insert(VoteAggregate).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["subject_id", "dimension", "dimension_value"],
            set_={
                "vote_count": VoteAggregate.vote_count + amount,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

    async def list_by_subject(
        self,
        subject_id: int,
        dimension: Optional[str] = None,
    ) -> list[VoteAggregate]:
        """Get a subject's counters, optionally for one dimension."""
        query = select(VoteAggregate).where(VoteAggregate.subject_id == subject_id)
        if dimension is not None:
            query = query.where(VoteAggregate.dimension == dimension)
        # Counters change through core upserts; refresh any loaded rows
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def list_by_dimension(
        self,
        dimension: str,
        value: Optional[str] = None,
        value_prefix: Optional[str] = None,
    ) -> list[VoteAggregate]:
        """Get one dimension's counters across all subjects."""
        query = select(VoteAggregate).where(VoteAggregate.dimension == dimension)
        if value is not None:
            query = query.where(VoteAggregate.dimension_value == value)
        if value_prefix is not None:
            query = query.where(VoteAggregate.dimension_value.startswith(value_prefix, autoescape=True))
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def delete_for_subject(self, subject_id: int) -> None:
        """Drop a subject's counters and applied markers (before a rebuild)."""
        await self.db.execute(delete(VoteAggregate).where(VoteAggregate.subject_id == subject_id))
        await self.db.execute(delete(AppliedVote).where(AppliedVote.subject_id == subject_id))
