"""Schemas module initialization."""

from schemas.stats import (
    BreakdownEntry,
    PrefectureEntry,
    PrefectureMap,
    PrefectureTrendStats,
    RegionStats,
    SubjectStats,
    SubjectVoteCount,
)
from schemas.vote import (
    Demographics,
    Fingerprint,
    VoteCreate,
    VoteHistory,
    VoteRecord,
    VoteResponse,
    VoteStatus,
)

__all__ = [
    "BreakdownEntry",
    "Demographics",
    "Fingerprint",
    "PrefectureEntry",
    "PrefectureMap",
    "PrefectureTrendStats",
    "RegionStats",
    "SubjectStats",
    "SubjectVoteCount",
    "VoteCreate",
    "VoteHistory",
    "VoteRecord",
    "VoteResponse",
    "VoteStatus",
]
