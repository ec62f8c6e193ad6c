"""
Vote target resolution.

Clients historically send one numeric ``option_ref`` that means one of two
things:

- a semantic key id (one of the four canonical accent patterns) that applies
  to the subject named in the request, or
- a global option id, which already implies its own subject and key.

The two id spaces overlap numerically, so the reserved semantic key range
decides: refs inside RESERVED_SEMANTIC_KEY_IDS are semantic keys, everything
else is a global option id. Newer clients send ``option_id`` or
``semantic_key`` instead and never hit the ambiguity.

A global option id owned by another subject is rejected, never redirected.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from core.exceptions import (
    CatalogIntegrityError,
    InvalidOptionRefError,
    OptionNotAvailableForSubjectError,
    OptionNotFoundError,
    SubjectOptionMismatchError,
)
from models.subject import SubjectOption
from repositories.catalog_repository import CatalogRepository

logger = structlog.get_logger(__name__)

# Semantic key ids clients may submit as option_ref (atamadaka, heiban,
# nakadaka, odaka). Option ids must stay above this range; see
# TargetResolver.verify_reserved_range.
RESERVED_SEMANTIC_KEY_IDS = frozenset({1, 2, 3, 4})
RESERVED_RANGE_MAX = max(RESERVED_SEMANTIC_KEY_IDS)


@dataclass(frozen=True)
class ResolvedTarget:
    """Canonical vote target. Downstream code uses only these values."""

    subject_id: int
    option_id: int
    semantic_key: str
    semantic_key_id: int


def _validate_ref(value: object, field: str) -> int:
    # bool is an int subclass; True must not pass as option 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOptionRefError(f"{field} must be an integer", field=field)
    if value <= 0:
        raise InvalidOptionRefError(f"{field} must be positive", field=field, value=value)
    return value


def _to_target(option: SubjectOption) -> ResolvedTarget:
    return ResolvedTarget(
        subject_id=option.subject_id,
        option_id=option.id,
        semantic_key=option.semantic_key.code,
        semantic_key_id=option.semantic_key_id,
    )


class TargetResolver:
    """Resolves submitted option references against the catalog."""

    def __init__(self, catalog: CatalogRepository):
        self.catalog = catalog

    async def resolve(self, subject_id: int, option_ref: int) -> ResolvedTarget:
        """
        Resolve an ambiguous option reference.

        Args:
            subject_id: Subject the client claims to vote on
            option_ref: Semantic key id (reserved range) or global option id

        Raises:
            InvalidOptionRefError: option_ref is not a positive integer
            OptionNotAvailableForSubjectError: reserved key the subject does not offer
            OptionNotFoundError: no option with that global id
            SubjectOptionMismatchError: the option belongs to another subject
        """
        option_ref = _validate_ref(option_ref, "option_ref")

        if option_ref in RESERVED_SEMANTIC_KEY_IDS:
            return await self._resolve_key_id(subject_id, option_ref)

        return await self.resolve_option_id(subject_id, option_ref)

    async def resolve_option_id(self, subject_id: int, option_id: int) -> ResolvedTarget:
        """Resolve an explicit global option id."""
        option_id = _validate_ref(option_id, "option_id")

        option = await self.catalog.get_option(option_id)
        if option is None:
            raise OptionNotFoundError(f"Option {option_id} does not exist", option_id=option_id)

        if option.subject_id != subject_id:
            logger.warning(
                "subject_option_mismatch",
                claimed_subject_id=subject_id,
                option_id=option_id,
                owner_subject_id=option.subject_id,
            )
            raise SubjectOptionMismatchError(
                f"Option {option_id} does not belong to subject {subject_id}",
                subject_id=subject_id,
                option_id=option_id,
            )

        return _to_target(option)

    async def resolve_semantic_key(self, subject_id: int, code: str) -> ResolvedTarget:
        """Resolve an explicit semantic key code such as "heiban"."""
        if not isinstance(code, str) or not code.strip():
            raise InvalidOptionRefError("semantic_key must be a non-empty string", field="semantic_key")

        option = await self.catalog.get_option_by_subject_and_code(subject_id, code.strip())
        if option is None:
            raise OptionNotAvailableForSubjectError(
                f"Subject {subject_id} has no option for {code!r}",
                subject_id=subject_id,
                semantic_key=code,
            )
        return _to_target(option)

    async def resolve_target(
        self,
        subject_id: int,
        *,
        option_ref: Optional[int] = None,
        option_id: Optional[int] = None,
        semantic_key: Optional[str] = None,
    ) -> ResolvedTarget:
        """Resolve whichever single reference field the client sent."""
        given = [
            name
            for name, value in (
                ("option_ref", option_ref),
                ("option_id", option_id),
                ("semantic_key", semantic_key),
            )
            if value is not None
        ]
        if len(given) != 1:
            raise InvalidOptionRefError(
                "Exactly one of option_ref, option_id or semantic_key is required",
                given=given,
            )

        if option_id is not None:
            return await self.resolve_option_id(subject_id, option_id)
        if semantic_key is not None:
            return await self.resolve_semantic_key(subject_id, semantic_key)
        return await self.resolve(subject_id, option_ref)  # type: ignore[arg-type]

    async def verify_reserved_range(self) -> None:
        """
        Check that no option id falls in the reserved range.

        Such an option could never be addressed through option_ref. Semantic
        keys outside the range (a poll's own answers) are fine: clients reach
        them through the semantic_key field.

        Raises:
            CatalogIntegrityError: An option id collides with a reserved key id
        """
        shadowed = await self.catalog.list_option_ids_up_to(RESERVED_RANGE_MAX)
        shadowed = [option_id for option_id in shadowed if option_id in RESERVED_SEMANTIC_KEY_IDS]
        if shadowed:
            raise CatalogIntegrityError(
                f"Option ids {shadowed} collide with reserved semantic key ids",
                option_ids=shadowed,
            )

    async def _resolve_key_id(self, subject_id: int, semantic_key_id: int) -> ResolvedTarget:
        option = await self.catalog.get_option_by_subject_and_key(subject_id, semantic_key_id)
        if option is None:
            raise OptionNotAvailableForSubjectError(
                f"Subject {subject_id} has no option for semantic key {semantic_key_id}",
                subject_id=subject_id,
                semantic_key_id=semantic_key_id,
            )
        return _to_target(option)
