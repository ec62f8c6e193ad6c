"""Repository modules for database access."""

from repositories.aggregate_repository import AggregateRepository
from repositories.catalog_repository import CatalogRepository
from repositories.settings_repository import SettingsRepository
from repositories.vote_repository import VoteRepository

__all__ = [
    "AggregateRepository",
    "CatalogRepository",
    "SettingsRepository",
    "VoteRepository",
]
