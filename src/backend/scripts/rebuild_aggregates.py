"""
Recompute vote aggregates from the vote ledger.

Use after a partial failure or when a counter is suspected to drift.
Run from src/backend with: python -m scripts.rebuild_aggregates [subject_id ...]
"""

import asyncio
import sys

from sqlalchemy import select

from db.session import close_db, get_session_factory, init_db
from models.subject import Subject
from services.aggregate_maintainer import AggregateMaintainer


async def rebuild(subject_ids: list[int]) -> None:
    await init_db()
    try:
        async with get_session_factory()() as session:
            if not subject_ids:
                result = await session.execute(select(Subject.id).order_by(Subject.id))
                subject_ids = list(result.scalars().all())

            maintainer = AggregateMaintainer(session)
            for subject_id in subject_ids:
                replayed = await maintainer.rebuild(subject_id)
                print(f"Subject {subject_id}: {replayed} votes replayed")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(rebuild([int(arg) for arg in sys.argv[1:]]))
