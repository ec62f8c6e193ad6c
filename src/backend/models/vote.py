"""
Vote model: the ledger of accepted votes.

The identity is a one-way hash of a device fingerprint or user id; no
personal data is stored with the vote.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class Vote(Base):
    """
    Immutable vote record.

    PRIVACY DESIGN:
    - identity = SHA-256 of the device fingerprint (or salted user id)
    - Demographics are optional and coarse (prefecture, age band, gender)

    The unique constraint on (identity, subject_id) is what enforces one vote
    per identity per subject across all API instances.
    """

    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    identity: Mapped[str] = mapped_column(String(64), index=True)

    subject_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        index=True,
    )
    option_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subject_options.id", ondelete="CASCADE"),
    )
    # Resolved semantic key code, denormalized for aggregation
    semantic_key: Mapped[str] = mapped_column(String(32))

    # Anonymized demographics (optional)
    region: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    age_band: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("identity", "subject_id", name="uq_votes_identity_subject"),
        Index("ix_votes_subject_created", "subject_id", "created_at"),
    )
