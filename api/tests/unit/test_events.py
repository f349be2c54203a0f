"""
Tests unitarios para los manejadores de inicio/cierre y la configuracion.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from feedsync.core import events
from feedsync.core.config import Settings, parse_list_setting


class TestParseListSetting:
    """Tests para parse_list_setting()."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("", []),
            ("   ", []),
            ('["Dallas", "Austin"]', ["Dallas", "Austin"]),
            ("Dallas, Austin ,", ["Dallas", "Austin"]),
            ('"Dallas"', ["Dallas"]),
        ],
    )
    def test_parses_json_or_csv(self, raw, expected) -> None:
        assert parse_list_setting(raw) == expected


class TestSettings:
    """Tests para Settings.effective_database_url."""

    def test_url_override_wins(self) -> None:
        settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./local.db")

        assert settings.effective_database_url == "sqlite+aiosqlite:///./local.db"

    def test_url_built_from_components(self) -> None:
        settings = Settings(
            DATABASE_URL="",
            DATABASE_USER="u",
            DATABASE_PASSWORD="p",
            DATABASE_HOST="db",
            DATABASE_PORT=6543,
            DATABASE_NAME="feeds",
        )

        assert settings.effective_database_url == "postgresql+asyncpg://u:p@db:6543/feeds"


class TestLifecycleHandlers:
    """Tests para startup_handler() / shutdown_handler()."""

    @pytest.mark.asyncio
    async def test_startup_initializes_db_then_recovers(self) -> None:
        orchestrator = MagicMock()
        orchestrator.start = AsyncMock(return_value=2)

        with patch.object(events, "init_db", new=AsyncMock()) as init_db, \
                patch.object(events.logger, "add") as add_sink:
            await events.startup_handler(orchestrator)()

        add_sink.assert_called_once()
        init_db.assert_awaited_once()
        orchestrator.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_startup_reraises_errors(self) -> None:
        orchestrator = MagicMock()
        orchestrator.start = AsyncMock()

        with patch.object(events, "init_db", new=AsyncMock(side_effect=RuntimeError("db down"))), \
                patch.object(events.logger, "add"):
            with pytest.raises(RuntimeError):
                await events.startup_handler(orchestrator)()

        orchestrator.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shutdown_releases_everything(self) -> None:
        orchestrator = MagicMock()
        orchestrator.shutdown = AsyncMock()
        client = MagicMock()

        with patch.object(events, "close_db", new=AsyncMock()) as close_db:
            await events.shutdown_handler(orchestrator, client)()

        orchestrator.shutdown.assert_awaited_once()
        client.close.assert_called_once()
        close_db.assert_awaited_once()
