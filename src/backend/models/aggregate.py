"""
Aggregate models: derived vote tallies.

Tallies are a projection of the votes table and can always be rebuilt from it.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class Dimension(str, Enum):
    """Axes along which votes are counted."""

    OVERALL = "overall"
    SEMANTIC_KEY = "semantic_key"
    REGION = "region"
    AGE_BAND = "age_band"
    GENDER = "gender"
    TIME_BUCKET = "time_bucket"
    REGION_SEMANTIC_KEY = "region_semantic_key"  # "<region>:<semantic key>"


# Dimension value of the single overall counter
OVERALL_VALUE = "*"


class VoteAggregate(Base):
    """Counter keyed by (subject, dimension, dimension value)."""

    __tablename__ = "vote_aggregates"

    __table_args__ = (
        UniqueConstraint(
            "subject_id",
            "dimension",
            "dimension_value",
            name="uq_vote_aggregates_key",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(Integer, index=True)
    dimension: Mapped[str] = mapped_column(String(32))
    dimension_value: Mapped[str] = mapped_column(String(64))
    vote_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class AppliedVote(Base):
    """Marks a vote as counted so replays never double count it."""

    __tablename__ = "applied_votes"

    vote_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subject_id: Mapped[int] = mapped_column(Integer, index=True)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
