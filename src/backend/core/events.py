"""
Application lifecycle event handlers.

Manages startup and shutdown tasks: logging setup, database connections and
the catalog's reserved-range check.
"""

from typing import Callable

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import CatalogIntegrityError
from core.logging import configure_logging
from db.session import close_db, get_session_factory, init_db
from repositories.catalog_repository import CatalogRepository
from services.target_resolver import TargetResolver

logger = structlog.get_logger(__name__)


async def verify_catalog() -> bool:
    """
    Check the catalog against the reserved semantic key range.

    Returns:
        True if the catalog is consistent. Problems are logged, not raised,
        so the API still serves statistics.
    """
    async with get_session_factory()() as session:
        try:
            await TargetResolver(CatalogRepository(session)).verify_reserved_range()
        except CatalogIntegrityError as e:
            logger.error("catalog_integrity_violation", error=e.message, **e.context)
            return False
        except SQLAlchemyError as e:
            logger.warning("catalog_check_skipped", error=str(e))
            return False
    logger.info("catalog_verified")
    return True


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        configure_logging()
        logger.info("api_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        # Tables are created only for local SQLite runs; deployments migrate
        await init_db(create_tables=settings.SQLALCHEMY_DATABASE_URL.startswith("sqlite"))

        await verify_catalog()

        logger.info("api_started")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("api_stopping")

        # Close database connections
        await close_db()

        logger.info("api_stopped")

    return stop_app
