"""
Vote ledger: the single writer of votes.

Recording a vote:
1. Resolve the submitted reference to a canonical (subject, option, key)
2. Check the subject exists and is open
3. Check-then-insert the vote; the (identity, subject_id) unique constraint
   settles races between concurrent requests and API instances
4. Apply the aggregate increments in the same transaction and commit

A lost uniqueness race is re-read and reported as AlreadyVotedError. Other
storage failures are retried once, then surfaced as StorageUnavailableError.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    AlreadyVotedError,
    StorageUnavailableError,
    SubjectClosedError,
    SubjectNotFoundError,
)
from core.security import short_identity
from models.vote import Vote
from repositories.catalog_repository import CatalogRepository
from repositories.vote_repository import VoteRepository
from schemas.vote import Demographics
from services.aggregate_maintainer import AcceptedVote, AggregateMaintainer
from services.target_resolver import ResolvedTarget, TargetResolver

logger = structlog.get_logger(__name__)

# Extra attempts after a transient storage failure
STORAGE_RETRIES = 1

MAX_HISTORY_LIMIT = 100

_TRANSIENT_ERRORS = (DBAPIError, PoolTimeoutError)


class VoteLedger:
    """Records votes, at most one per identity per subject."""

    def __init__(
        self,
        db: AsyncSession,
        resolver: Optional[TargetResolver] = None,
        maintainer: Optional[AggregateMaintainer] = None,
    ):
        self.db = db
        self.votes = VoteRepository(db)
        self.catalog = CatalogRepository(db)
        self.resolver = resolver or TargetResolver(self.catalog)
        self.maintainer = maintainer or AggregateMaintainer(db)

    async def record_vote(
        self,
        identity: str,
        subject_id: int,
        option_ref: Optional[int] = None,
        demographics: Optional[Demographics] = None,
        *,
        option_id: Optional[int] = None,
        semantic_key: Optional[str] = None,
    ) -> Vote:
        """
        Record an identity's vote on a subject.

        Args:
            identity: Voter identity (derived hash)
            subject_id: Subject the client votes on
            option_ref: Legacy ambiguous reference (semantic key id or option id)
            demographics: Optional prefecture / age band / gender snapshot
            option_id: Explicit global option id
            semantic_key: Explicit semantic key code

        Returns:
            The stored vote

        Raises:
            VoteServiceError subclasses; AlreadyVotedError on duplicates
        """
        if not identity:
            raise ValueError("identity is required")

        try:
            target = await self.resolver.resolve_target(
                subject_id,
                option_ref=option_ref,
                option_id=option_id,
                semantic_key=semantic_key,
            )
            subject = await self.catalog.get_subject(target.subject_id)
        except _TRANSIENT_ERRORS as e:
            await self.db.rollback()
            logger.error("vote_catalog_unavailable", subject_id=subject_id, error=str(e))
            raise StorageUnavailableError("Vote storage is unavailable, please retry") from e

        if subject is None:
            raise SubjectNotFoundError(f"Subject {target.subject_id} does not exist")
        if not subject.is_open():
            raise SubjectClosedError(f"Subject {target.subject_id} is not accepting votes")

        last_error: Optional[Exception] = None
        for attempt in range(1 + STORAGE_RETRIES):
            try:
                return await self._insert_once(identity, target, demographics)
            except IntegrityError as e:
                await self.db.rollback()
                last_error = e
                existing = await self._reread(identity, target.subject_id)
                if existing is not None:
                    logger.info(
                        "vote_rejected_duplicate",
                        identity=short_identity(identity),
                        subject_id=target.subject_id,
                        race=True,
                    )
                    raise AlreadyVotedError(
                        "You have already voted on this subject",
                        existing_vote_id=existing.id,
                    ) from e
            except _TRANSIENT_ERRORS as e:
                await self.db.rollback()
                last_error = e

            logger.warning(
                "vote_storage_retry",
                attempt=attempt + 1,
                subject_id=target.subject_id,
                error=str(last_error),
            )

        logger.error("vote_storage_unavailable", subject_id=target.subject_id, error=str(last_error))
        raise StorageUnavailableError("Vote storage is unavailable, please retry") from last_error

    async def get_vote(self, identity: str, subject_id: int) -> Optional[Vote]:
        """The identity's vote on a subject, if any."""
        return await self.votes.get_by_identity_and_subject(identity, subject_id)

    async def list_votes(self, identity: str, limit: int = 20, offset: int = 0) -> list[Vote]:
        """The identity's voting history, newest first."""
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        offset = max(0, offset)
        return await self.votes.list_by_identity(identity, limit=limit, offset=offset)

    async def _insert_once(
        self,
        identity: str,
        target: ResolvedTarget,
        demographics: Optional[Demographics],
    ) -> Vote:
        existing = await self.votes.get_by_identity_and_subject(identity, target.subject_id)
        if existing is not None:
            logger.info(
                "vote_rejected_duplicate",
                identity=short_identity(identity),
                subject_id=target.subject_id,
            )
            raise AlreadyVotedError(
                "You have already voted on this subject",
                existing_vote_id=existing.id,
            )

        vote = await self.votes.create(
            identity=identity,
            subject_id=target.subject_id,
            option_id=target.option_id,
            semantic_key=target.semantic_key,
            region=demographics.region if demographics else None,
            age_band=demographics.age_band if demographics else None,
            gender=demographics.gender if demographics else None,
        )
        await self.maintainer.apply(AcceptedVote.from_model(vote))
        await self.db.commit()

        logger.info(
            "vote_recorded",
            vote_id=vote.id,
            identity=short_identity(identity),
            subject_id=target.subject_id,
            option_id=target.option_id,
            semantic_key=target.semantic_key,
        )
        return vote

    async def _reread(self, identity: str, subject_id: int) -> Optional[Vote]:
        try:
            return await self.votes.get_by_identity_and_subject(identity, subject_id)
        except _TRANSIENT_ERRORS as e:
            await self.db.rollback()
            logger.warning("vote_reread_failed", subject_id=subject_id, error=str(e))
            return None
