"""
Repositorio de overrides en caliente (tabla system_settings).
"""
from typing import Any, Dict, Iterable

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.database.models import SystemSettingsModel


class SystemSettingsRepository:
    """Lectura y escritura de valores JSON por clave."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_value(self, key: str, default: Any = None) -> Any:
        setting = await self.db.get(SystemSettingsModel, key)
        return setting.value if setting is not None else default

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """
        Valores guardados para las claves pedidas.

        Las claves sin fila no aparecen en el resultado; el llamador decide
        el valor por defecto.
        """
        wanted = list(keys)
        if not wanted:
            return {}
        result = await self.db.execute(
            select(SystemSettingsModel.key, SystemSettingsModel.value)
            .where(SystemSettingsModel.key.in_(wanted))
        )
        return {key: value for key, value in result.all()}

    async def set_value(self, key: str, value: Any, description: str = None) -> SystemSettingsModel:
        setting = await self.db.get(SystemSettingsModel, key)

        if setting is None:
            setting = SystemSettingsModel(key=key, value=value, description=description)
            self.db.add(setting)
        else:
            setting.value = value
            if description:
                setting.description = description

        await self.db.flush()
        logger.info(f"Override '{key}' = {value!r}")
        return setting

    async def delete_value(self, key: str) -> bool:
        """Quita un override; el valor vuelve a salir del entorno."""
        result = await self.db.execute(delete(SystemSettingsModel).where(SystemSettingsModel.key == key))
        return (result.rowcount or 0) > 0
