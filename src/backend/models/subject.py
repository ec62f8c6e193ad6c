"""
Catalog models: subjects, their options, and the shared semantic keys.

A subject is anything voters answer (a word's accent question or a poll).
Options are globally numbered, but each one also carries a semantic key from
a small shared vocabulary (the canonical accent patterns), so the same key
appears under many subjects.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubjectKind(str, Enum):
    """What is being voted on."""

    WORD = "word"  # Accent of a word
    POLL = "poll"  # General opinion poll


class SemanticKey(Base):
    """
    Shared option meaning, e.g. one of the four accent patterns.

    Ids are small integer codes that clients may submit directly.
    """

    __tablename__ = "semantic_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    label: Mapped[str] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Subject(Base):
    """A word or poll that accepts one vote per identity."""

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str] = mapped_column(String(200))
    kind: Mapped[str] = mapped_column(String(20), default=SubjectKind.WORD.value, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Optional voting window
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    options = relationship(
        "SubjectOption",
        back_populates="subject",
        cascade="all, delete-orphan",
        order_by="SubjectOption.display_order",
    )

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Check whether the subject accepts votes at the given time."""
        now = now or datetime.now(timezone.utc)
        starts_at = as_utc(self.starts_at)
        ends_at = as_utc(self.ends_at)
        if starts_at and now < starts_at:
            return False
        if ends_at and now >= ends_at:
            return False
        return True


class SubjectOption(Base):
    """
    One selectable alternative of a subject.

    The id is unique across all subjects; (subject_id, semantic_key_id) is
    unique within the catalog.
    """

    __tablename__ = "subject_options"

    __table_args__ = (
        UniqueConstraint("subject_id", "semantic_key_id", name="uq_subject_options_subject_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    subject_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        index=True,
    )
    semantic_key_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("semantic_keys.id"),
        index=True,
    )

    label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    subject = relationship("Subject", back_populates="options")
    semantic_key = relationship("SemanticKey", lazy="joined")
