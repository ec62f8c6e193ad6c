"""
Vote endpoints.

One vote per identity per subject. A signed-in user votes as themselves;
anyone else is identified by the sealed device cookie or, on a first visit,
the device fingerprint. Device identities are re-sealed into the cookie after
every accepted vote.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import (
    BearerCredentials,
    Guard,
    get_config_snapshot,
    get_optional_voter_identity,
    resolve_voter_identity,
    set_identity_cookie,
)
from db.session import get_db
from schemas.vote import VoteCreate, VoteHistory, VoteRecord, VoteResponse, VoteStatus
from services.config_store import ConfigSnapshot
from services.vote_ledger import MAX_HISTORY_LIMIT, VoteLedger

router = APIRouter()


@router.post("", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    vote_data: VoteCreate,
    request: Request,
    response: Response,
    credentials: BearerCredentials,
    guard: Guard,
    config: Annotated[ConfigSnapshot, Depends(get_config_snapshot)],
    db: AsyncSession = Depends(get_db),
) -> VoteResponse:
    """
    Cast a vote on a subject.

    Send exactly one of:
    - ``option_id``: global option id
    - ``semantic_key``: accent pattern code (atamadaka, heiban, nakadaka, odaka)
    - ``option_ref``: legacy reference, 1-4 for a semantic key, otherwise an option id

    Errors come back as ``{"detail": ..., "error": <code>}``; a repeat vote is
    409 ``already_voted``.
    """
    if config.maintenance_mode:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Voting is paused for maintenance",
        )

    voter = resolve_voter_identity(request, credentials, guard, vote_data.fingerprint)

    ledger = VoteLedger(db)
    vote = await ledger.record_vote(
        voter.value,
        vote_data.subject_id,
        vote_data.option_ref,
        vote_data.demographics,
        option_id=vote_data.option_id,
        semantic_key=vote_data.semantic_key,
    )

    # Signed-in identities stay out of the shared device cookie
    if not voter.authenticated:
        set_identity_cookie(response, guard, voter.value)

    return VoteResponse(
        vote_id=vote.id,
        subject_id=vote.subject_id,
        option_id=vote.option_id,
        semantic_key=vote.semantic_key,
    )


@router.get("/status/{subject_id}", response_model=VoteStatus)
async def check_vote_status(
    subject_id: int,
    identity: Annotated[Optional[str], Depends(get_optional_voter_identity)],
    db: AsyncSession = Depends(get_db),
) -> VoteStatus:
    """Check whether the caller has already voted on a subject."""
    if identity is None:
        return VoteStatus(subject_id=subject_id, has_voted=False)

    vote = await VoteLedger(db).get_vote(identity, subject_id)
    return VoteStatus(
        subject_id=subject_id,
        has_voted=vote is not None,
        vote_id=vote.id if vote else None,
    )


@router.get("/history", response_model=VoteHistory)
async def get_vote_history(
    identity: Annotated[Optional[str], Depends(get_optional_voter_identity)],
    limit: int = Query(20, ge=1, le=MAX_HISTORY_LIMIT),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> VoteHistory:
    """The caller's own votes, newest first."""
    if identity is None:
        return VoteHistory(votes=[], limit=limit, offset=offset, count=0)

    votes = await VoteLedger(db).list_votes(identity, limit=limit, offset=offset)
    records = [VoteRecord.model_validate(vote) for vote in votes]
    return VoteHistory(votes=records, limit=limit, offset=offset, count=len(records))
