"""
Vote repository for database operations.

Only the vote ledger writes through this repository.
"""

from datetime import datetime, timezone
from typing import AsyncIterator, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.vote import Vote


class VoteRepository:
    """Repository for vote database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_identity_and_subject(self, identity: str, subject_id: int) -> Optional[Vote]:
        """Get the vote an identity cast on a subject, if any."""
        result = await self.db.execute(
            select(Vote).where(
                Vote.identity == identity,
                Vote.subject_id == subject_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        identity: str,
        subject_id: int,
        option_id: int,
        semantic_key: str,
        region: Optional[str] = None,
        age_band: Optional[str] = None,
        gender: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Vote:
        """
        Create a vote record.

        Raises sqlalchemy.exc.IntegrityError on flush when the identity already
        voted on the subject.
        """
        vote = Vote(
            id=str(uuid4()),
            identity=identity,
            subject_id=subject_id,
            option_id=option_id,
            semantic_key=semantic_key,
            region=region,
            age_band=age_band,
            gender=gender,
            created_at=created_at or datetime.now(timezone.utc),
        )

        self.db.add(vote)
        await self.db.flush()

        return vote

    async def list_by_identity(
        self,
        identity: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Vote]:
        """Get an identity's votes, newest first."""
        result = await self.db.execute(
            select(Vote)
            .where(Vote.identity == identity)
            .order_by(Vote.created_at.desc(), Vote.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def iter_by_subject(self, subject_id: int, batch_size: int = 500) -> AsyncIterator[Vote]:
        """Stream a subject's votes in insertion order."""
        offset = 0
        while True:
            result = await self.db.execute(
                select(Vote)
                .where(Vote.subject_id == subject_id)
                .order_by(Vote.created_at, Vote.id)
                .offset(offset)
                .limit(batch_size)
            )
            batch = list(result.scalars().all())
            for vote in batch:
                yield vote
            if len(batch) < batch_size:
                return
            offset += batch_size
