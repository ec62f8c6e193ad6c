"""
Seed script to create the accent patterns and sample word subjects for development/demo.
Run from src/backend with: python -m scripts.seed_catalog
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import close_db, get_session_factory, init_db
from models.subject import SemanticKey, Subject, SubjectKind, SubjectOption
from repositories.catalog_repository import CatalogRepository
from services.target_resolver import TargetResolver

# Ids double as the legacy option_ref values 1-4
SEMANTIC_KEYS = [
    (1, "atamadaka", "頭高型", "First mora high, the rest low"),
    (2, "heiban", "平板型", "First mora low, no downstep"),
    (3, "nakadaka", "中高型", "Downstep inside the word"),
    (4, "odaka", "尾高型", "Downstep right after the word"),
]

# (subject id, word, offered semantic key ids)
SEED_WORDS = [
    (1, "箸", [1, 4]),
    (2, "橋", [1, 4]),
    (3, "雨", [1, 2]),
    (4, "飴", [1, 2]),
    (5, "桜", [1, 2, 3]),
    (6, "日本語", [2, 3]),
    (7, "電話", [2, 3]),
    (8, "紅葉", [1, 2]),
]


def option_id_for(subject_id: int, semantic_key_id: int) -> int:
    """Global option ids, always above the reserved 1-4 range."""
    return subject_id * 10 + semantic_key_id


async def seed_catalog(session: AsyncSession) -> int:
    """Insert the seed catalog. Returns the number of subjects created."""
    result = await session.execute(select(Subject).limit(1))
    if result.scalar_one_or_none():
        print("Subjects already exist in database. Skipping seed.")
        return 0

    labels = {key_id: label for key_id, _, label, _ in SEMANTIC_KEYS}
    for key_id, code, label, description in SEMANTIC_KEYS:
        session.add(SemanticKey(id=key_id, code=code, label=label, description=description))
    await session.flush()

    for subject_id, word, key_ids in SEED_WORDS:
        subject = Subject(id=subject_id, label=word, kind=SubjectKind.WORD.value)
        for order, key_id in enumerate(key_ids):
            subject.options.append(
                SubjectOption(
                    id=option_id_for(subject_id, key_id),
                    semantic_key_id=key_id,
                    label=labels[key_id],
                    display_order=order,
                )
            )
        session.add(subject)
        print(f"Created subject: {word} ({len(key_ids)} options)")

    await session.commit()

    await TargetResolver(CatalogRepository(session)).verify_reserved_range()
    print(f"\n✅ Created {len(SEED_WORDS)} subjects successfully!")
    return len(SEED_WORDS)


async def main() -> None:
    await init_db(create_tables=True)
    try:
        async with get_session_factory()() as session:
            await seed_catalog(session)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
