"""
Versioned application settings.

Runtime-tunable values (display thresholds, feature switches) live in the
app_settings table and are read per request as an immutable snapshot.
Writes are compare-and-set on the row version.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConfigVersionConflictError, UnknownSettingError
from repositories.settings_repository import SettingsRepository

logger = structlog.get_logger(__name__)

DEFAULT_APP_SETTINGS: Mapping[str, Any] = MappingProxyType(
    {
        "vote.min_votes_to_show_stats": 5,
        "features.maintenance_mode": False,
    }
)


@dataclass(frozen=True)
class ConfigSnapshot:
    """Settings as read at one point in time."""

    values: Mapping[str, Any] = field(default_factory=lambda: dict(DEFAULT_APP_SETTINGS))
    version: int = 0

    def get(self, key: str) -> Any:
        if key not in self.values:
            raise UnknownSettingError(f"Unknown setting {key!r}", key=key)
        return self.values[key]

    @property
    def min_votes_to_show_stats(self) -> int:
        return int(self.get("vote.min_votes_to_show_stats"))

    @property
    def maintenance_mode(self) -> bool:
        return bool(self.get("features.maintenance_mode"))


class ConfigStore:
    """Reads and writes versioned settings."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = SettingsRepository(db)

    async def snapshot(self) -> ConfigSnapshot:
        """Defaults overlaid with stored values; version is the newest row version."""
        values = dict(DEFAULT_APP_SETTINGS)
        version = 0
        for row in await self.settings.list_all():
            if row.key not in DEFAULT_APP_SETTINGS:
                continue
            values[row.key] = row.value
            version = max(version, row.version)
        return ConfigSnapshot(values=MappingProxyType(values), version=version)

    async def put(self, key: str, value: Any, expected_version: Optional[int] = None) -> int:
        """
        Store a setting value.

        Args:
            key: Setting name, one of DEFAULT_APP_SETTINGS
            value: JSON-serializable value
            expected_version: Version the caller last read (0 for "never
                stored"). None writes unconditionally.

        Returns:
            The new version of the setting

        Raises:
            UnknownSettingError: key is not a known setting
            ConfigVersionConflictError: the stored version moved on
        """
        if key not in DEFAULT_APP_SETTINGS:
            raise UnknownSettingError(f"Unknown setting {key!r}", key=key)

        current = await self.settings.get(key)
        current_version = current.version if current is not None else 0

        if expected_version is not None and expected_version != current_version:
            raise ConfigVersionConflictError(
                f"Setting {key!r} is at version {current_version}, not {expected_version}",
                key=key,
                current_version=current_version,
            )

        if current is None:
            try:
                await self.settings.create(key, value)
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ConfigVersionConflictError(
                    f"Setting {key!r} was created concurrently", key=key
                ) from e
            new_version = 1
        else:
            if not await self.settings.update_if_version(key, value, current_version):
                await self.db.rollback()
                raise ConfigVersionConflictError(
                    f"Setting {key!r} was modified concurrently", key=key
                )
            await self.db.commit()
            new_version = current_version + 1

        logger.info("app_setting_updated", key=key, version=new_version)
        return new_version
