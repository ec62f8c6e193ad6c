"""
Settings repository for versioned application settings.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.app_setting import AppSetting


class SettingsRepository:
    """Repository for app_settings rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def list_all(self) -> list[AppSetting]:
        result = await self.db.execute(
            select(AppSetting).order_by(AppSetting.key).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get(self, key: str) -> Optional[AppSetting]:
        result = await self.db.execute(
            select(AppSetting)
            .where(AppSetting.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, key: str, value: Any) -> AppSetting:
        """Insert the first version of a setting."""
        setting = AppSetting(
            key=key,
            value=value,
            version=1,
            updated_at=datetime.now(timezone.utc),
        )
        self.db.add(setting)
        await self.db.flush()
        return setting

    async def update_if_version(self, key: str, value: Any, expected_version: int) -> bool:
        """
        Compare-and-set a setting.

        Returns:
            True if the stored version matched and the row was updated
        """
        result = await self.db.execute(
            update(AppSetting)
            .where(AppSetting.key == key, AppSetting.version == expected_version)
            .values(
                value=value,
                version=AppSetting.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        return self._get_rowcount(result) > 0
