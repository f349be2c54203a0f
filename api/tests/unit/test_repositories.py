"""
Tests unitarios de los repositorios sobre SQLite.
"""
import pytest

from feedsync.application.services.sync_settings import load_sync_settings
from feedsync.infrastructure.repositories.feed_repository import FeedRepository
from feedsync.infrastructure.repositories.sync_run_repository import SyncRunRepository
from feedsync.infrastructure.repositories.system_settings_repository import SystemSettingsRepository
from feedsync.shared.constants.sync_constants import (
    FeedKind,
    SETTING_ADAPTIVE_ENABLED,
    SETTING_LOCATIONS,
    SETTING_LOOKBACK_DAYS,
    SyncStatus,
)
from feedsync.shared.exceptions.domain import ConcurrencyConflict, FeedLinkError


class TestSyncRunRepository:
    """Tests para SyncRunRepository."""

    @pytest.mark.asyncio
    async def test_index_rejects_second_in_flight_run(self, session_factory) -> None:
        """La base rechaza una segunda corrida en vuelo aunque nadie la consulte antes."""
        async with session_factory() as db:
            first = await SyncRunRepository(db).create_pending("PROJECTS")
            await db.commit()
            first_id = first.id

        async with session_factory() as db:
            with pytest.raises(ConcurrencyConflict) as exc_info:
                await SyncRunRepository(db).create_pending("PROJECTS")

        assert exc_info.value.kind == "PROJECTS"
        assert exc_info.value.existing_run_id == first_id

    @pytest.mark.asyncio
    async def test_terminal_run_frees_the_kind(self, session_factory) -> None:
        async with session_factory() as db:
            repo = SyncRunRepository(db)
            first = await repo.create_pending("PROJECTS")
            assert await repo.transition(first.id, SyncStatus.FAILED, error_message="x") is True
            second = await repo.create_pending("PROJECTS")
            await db.commit()

        assert second.id != first.id
        assert second.status == SyncStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_transition_is_conditional(self, db_session) -> None:
        repo = SyncRunRepository(db_session)
        run = await repo.create_pending("OPPORTUNITIES")
        run_id = run.id

        assert await repo.transition(run_id, SyncStatus.COMPLETED, (SyncStatus.RUNNING,)) is False
        assert await repo.transition(run_id, SyncStatus.RUNNING, (SyncStatus.PENDING,)) is True
        assert await repo.transition(run_id, SyncStatus.COMPLETED, (SyncStatus.RUNNING,), records_processed=4) is True
        # Una corrida terminal no se vuelve a escribir
        assert await repo.transition(run_id, SyncStatus.FAILED) is False

        db_session.expire_all()
        stored = await repo.get_by_id(run_id)
        assert stored.status == SyncStatus.COMPLETED.value
        assert stored.records_processed == 4

    @pytest.mark.asyncio
    async def test_last_completed_and_in_flight(self, db_session) -> None:
        repo = SyncRunRepository(db_session)
        done = await repo.create_pending("PROJECTS")
        await repo.transition(done.id, SyncStatus.COMPLETED)
        running = await repo.create_pending("PROJECTS")

        assert (await repo.last_completed("PROJECTS")).id == done.id
        assert (await repo.get_in_flight("PROJECTS")).id == running.id
        assert await repo.get_in_flight("SERVICE_TICKETS") is None
        assert await repo.count_in_flight() == 1


class TestFeedRepository:
    """Tests para FeedRepository."""

    @pytest.mark.asyncio
    async def test_upsert_definition_by_url(self, db_session) -> None:
        repo = FeedRepository(db_session)

        feed, created = await repo.upsert_definition("Projects", FeedKind.PROJECTS, "http://rs/a")
        same, created_again = await repo.upsert_definition("Projects v2", FeedKind.PROJECTS, "http://rs/a")

        assert created is True
        assert created_again is False
        assert same.id == feed.id
        assert same.name == "Projects v2"
        assert len(await repo.get_all()) == 1

    @pytest.mark.asyncio
    async def test_link_validates_kinds(self, db_session) -> None:
        repo = FeedRepository(db_session)
        summary, _ = await repo.upsert_definition("Projects", FeedKind.PROJECTS, "http://rs/a")
        detail, _ = await repo.upsert_definition("Detail", FeedKind.PROJECT_DETAIL, "http://rs/b")
        tickets, _ = await repo.upsert_definition("Tickets", FeedKind.SERVICE_TICKETS, "http://rs/c")

        with pytest.raises(FeedLinkError):
            await repo.link_detail_feed(tickets.id, detail.id)
        with pytest.raises(FeedLinkError):
            await repo.link_detail_feed(summary.id, tickets.id)
        with pytest.raises(FeedLinkError):
            await repo.link_detail_feed(summary.id, 999)

        await repo.link_detail_feed(summary.id, detail.id)
        assert (await repo.get_detail_feed(summary)).id == detail.id

        await repo.unlink_detail_feed(summary.id)
        assert await repo.get_detail_feed(summary) is None

    @pytest.mark.asyncio
    async def test_get_by_kind_filters_inactive(self, db_session) -> None:
        repo = FeedRepository(db_session)
        active, _ = await repo.upsert_definition("A", FeedKind.PROJECTS, "http://rs/a")
        inactive, _ = await repo.upsert_definition("B", FeedKind.PROJECTS, "http://rs/b")
        await repo.set_active(inactive.id, False)

        assert [f.id for f in await repo.get_by_kind("PROJECTS")] == [active.id]
        assert [f.id for f in await repo.get_by_kind(FeedKind.PROJECTS, active_only=False)] == [active.id, inactive.id]


class TestSyncSettings:
    """Tests para load_sync_settings()."""

    @pytest.mark.asyncio
    async def test_system_settings_override_env_defaults(self, db_session) -> None:
        repo = SystemSettingsRepository(db_session)
        await repo.set_value(SETTING_LOOKBACK_DAYS, 30)
        await repo.set_value(SETTING_ADAPTIVE_ENABLED, False)
        await repo.set_value(SETTING_LOCATIONS, ["Dallas", " ", "Austin"])

        resolved = await load_sync_settings(db_session)

        assert resolved.lookback_days == 30
        assert resolved.adaptive_sync_enabled is False
        assert resolved.locations == ("Dallas", "Austin")

    @pytest.mark.asyncio
    async def test_invalid_lookback_falls_back_to_default(self, db_session) -> None:
        await SystemSettingsRepository(db_session).set_value(SETTING_LOOKBACK_DAYS, "soon")

        defaults = await load_sync_settings(db_session)

        assert isinstance(defaults.lookback_days, int)
        assert defaults.lookback_days >= 0

    @pytest.mark.asyncio
    async def test_set_value_updates_existing_key(self, db_session) -> None:
        repo = SystemSettingsRepository(db_session)
        await repo.set_value(SETTING_LOOKBACK_DAYS, 10, "Dias hacia atras")
        await repo.set_value(SETTING_LOOKBACK_DAYS, 20)

        assert await repo.get_value(SETTING_LOOKBACK_DAYS) == 20
        assert await repo.get_value("missing", "default") == "default"

    @pytest.mark.asyncio
    async def test_deleted_override_falls_back_to_environment(self, db_session) -> None:
        repo = SystemSettingsRepository(db_session)
        await repo.set_value(SETTING_ADAPTIVE_ENABLED, False)
        await repo.set_value("unrelated.key", 1)

        assert await repo.get_many([SETTING_ADAPTIVE_ENABLED, SETTING_LOCATIONS]) == {SETTING_ADAPTIVE_ENABLED: False}
        assert await repo.delete_value(SETTING_ADAPTIVE_ENABLED) is True
        assert await repo.delete_value(SETTING_ADAPTIVE_ENABLED) is False
        assert await repo.get_many([SETTING_ADAPTIVE_ENABLED]) == {}
