"""
Resolucion de la configuracion efectiva de una corrida.

system_settings (editable en caliente) tiene precedencia sobre las
variables de entorno. Se resuelve una vez por corrida.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.core.config import parse_list_setting, settings
from feedsync.infrastructure.repositories.system_settings_repository import SystemSettingsRepository
from feedsync.shared.constants.sync_constants import (
    SETTING_ADAPTIVE_ENABLED,
    SETTING_LOCATIONS,
    SETTING_LOOKBACK_DAYS,
    SETTING_PRESERVE_MULTI_VALUE,
)

SYNC_SETTING_KEYS = (
    SETTING_LOOKBACK_DAYS,
    SETTING_ADAPTIVE_ENABLED,
    SETTING_LOCATIONS,
    SETTING_PRESERVE_MULTI_VALUE,
)


@dataclass(frozen=True)
class SyncSettings:
    lookback_days: int
    adaptive_sync_enabled: bool
    locations: Tuple[str, ...] = ()
    preserve_multi_value: bool = False


def default_sync_settings() -> SyncSettings:
    return SyncSettings(
        lookback_days=settings.SYNC_LOOKBACK_DAYS,
        adaptive_sync_enabled=settings.SYNC_ADAPTIVE_ENABLED,
        locations=tuple(parse_list_setting(settings.SYNC_LOCATIONS)),
        preserve_multi_value=settings.SYNC_PRESERVE_MULTI_VALUE,
    )


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        logger.warning(f"Valor invalido para {SETTING_LOOKBACK_DAYS}: {value!r}; se usa {default}")
        return default


def _as_list(value: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, (list, tuple)):
        return tuple(str(v).strip() for v in value if str(v).strip())
    return tuple(parse_list_setting(str(value)))


async def load_sync_settings(db: AsyncSession) -> SyncSettings:
    """Lee los overrides de system_settings sobre los valores de entorno."""
    defaults = default_sync_settings()
    stored = await SystemSettingsRepository(db).get_many(SYNC_SETTING_KEYS)
    return SyncSettings(
        lookback_days=_as_int(stored.get(SETTING_LOOKBACK_DAYS), defaults.lookback_days),
        adaptive_sync_enabled=_as_bool(stored.get(SETTING_ADAPTIVE_ENABLED), defaults.adaptive_sync_enabled),
        locations=_as_list(stored.get(SETTING_LOCATIONS), defaults.locations),
        preserve_multi_value=_as_bool(stored.get(SETTING_PRESERVE_MULTI_VALUE), defaults.preserve_multi_value),
    )
