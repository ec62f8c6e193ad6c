"""
Catalog repository: read-only access to subjects, options and semantic keys.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.subject import SemanticKey, Subject, SubjectOption


class CatalogRepository:
    """Repository for catalog lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_subject(self, subject_id: int) -> Optional[Subject]:
        """Get a subject by ID."""
        result = await self.db.execute(select(Subject).where(Subject.id == subject_id))
        return result.scalar_one_or_none()

    async def list_subjects(self, subject_ids: list[int]) -> list[Subject]:
        """Get several subjects by ID, in no particular order."""
        if not subject_ids:
            return []
        result = await self.db.execute(select(Subject).where(Subject.id.in_(subject_ids)))
        return list(result.scalars().all())

    async def get_option(self, option_id: int) -> Optional[SubjectOption]:
        """Get an option by its global ID."""
        result = await self.db.execute(select(SubjectOption).where(SubjectOption.id == option_id))
        return result.scalar_one_or_none()

    async def get_option_by_subject_and_key(
        self,
        subject_id: int,
        semantic_key_id: int,
    ) -> Optional[SubjectOption]:
        """Get the option a subject offers for a semantic key ID."""
        result = await self.db.execute(
            select(SubjectOption).where(
                SubjectOption.subject_id == subject_id,
                SubjectOption.semantic_key_id == semantic_key_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_option_by_subject_and_code(
        self,
        subject_id: int,
        code: str,
    ) -> Optional[SubjectOption]:
        """Get the option a subject offers for a semantic key code."""
        result = await self.db.execute(
            select(SubjectOption)
            .join(SemanticKey, SubjectOption.semantic_key_id == SemanticKey.id)
            .where(
                SubjectOption.subject_id == subject_id,
                SemanticKey.code == code,
            )
        )
        return result.scalar_one_or_none()

    async def list_option_ids_up_to(self, upper_bound: int) -> list[int]:
        """Option IDs less than or equal to a bound, ascending."""
        result = await self.db.execute(
            select(SubjectOption.id)
            .where(SubjectOption.id <= upper_bound)
            .order_by(SubjectOption.id)
        )
        return list(result.scalars().all())
