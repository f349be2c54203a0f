"""
Tests unitarios para change_detector.py.

Las pruebas de upsert corren sobre SQLite (aiosqlite) con una sesion por
registro, igual que el pipeline real.
"""
import pytest

from feedsync.application.services.change_detector import (
    RecordUpsertEngine,
    UpsertOutcome,
    compare_fields,
    to_text,
)
from feedsync.application.services.field_mapper import map_opportunity_entry, map_project_entry
from feedsync.infrastructure.repositories.record_repository import RecordRepository
from feedsync.infrastructure.repositories.sync_change_repository import SyncChangeRepository
from feedsync.infrastructure.repositories.sync_run_repository import SyncRunRepository
from feedsync.shared.constants.sync_constants import RecordKind


class TestCompareFields:
    """Tests para compare_fields()."""

    def test_numeric_difference_within_tolerance_is_ignored(self) -> None:
        assert compare_fields({"budget": 100.0}, {"budget": 100.005}, ["budget"]) == []

    @pytest.mark.parametrize("old,new", [(100.00, 100.01), (0.29, 0.3), (2000.0, 1999.99)])
    def test_difference_of_exactly_one_cent_is_ignored(self, old, new) -> None:
        assert compare_fields({"budget": old}, {"budget": new}, ["budget"]) == []

    def test_numeric_difference_above_tolerance_is_reported(self) -> None:
        changes = compare_fields({"budget": 100.0}, {"budget": 100.02}, ["budget"])

        assert len(changes) == 1
        assert changes[0].field == "budget"
        assert changes[0].old_value == "100"
        assert changes[0].new_value == "100.02"

    def test_null_and_empty_text_are_equal(self) -> None:
        assert compare_fields({"notes": None}, {"notes": ""}, ["notes"]) == []

    def test_null_number_compares_as_zero(self) -> None:
        assert compare_fields({"hours_remaining": None}, {"hours_remaining": 0}, ["hours_remaining"]) == []

    def test_text_change(self) -> None:
        changes = compare_fields({"status": None}, {"status": "Open"}, ["status"])

        assert [(c.field, c.old_value, c.new_value) for c in changes] == [("status", None, "Open")]

    def test_boolean_change(self) -> None:
        changes = compare_fields({"is_active": True}, {"is_active": False}, ["is_active"])

        assert [(c.old_value, c.new_value) for c in changes] == [("1", "0")]

    def test_only_listed_fields_are_compared(self) -> None:
        assert compare_fields({"raw_data": "a"}, {"raw_data": "b"}, ["status"]) == []

    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), (True, "1"), (False, "0"), (50.0, "50"), (45.5, "45.5"), (7, "7"), ("x", "x")],
    )
    def test_to_text(self, value, expected) -> None:
        assert to_text(value) == expected


class TestRecordUpsertEngine:
    """Tests para RecordUpsertEngine.upsert()."""

    async def _run_id(self, session_factory) -> int:
        async with session_factory() as db:
            run = await SyncRunRepository(db).create_pending(RecordKind.PROJECTS.value)
            await db.commit()
            return run.id

    async def _upsert(self, session_factory, kind, run_id, row) -> UpsertOutcome:
        async with session_factory() as db:
            outcome = await RecordUpsertEngine().upsert(db, kind, run_id, row)
            await db.commit()
            return outcome

    async def _changes(self, session_factory, run_id):
        async with session_factory() as db:
            return await SyncChangeRepository(db).list_for_run(run_id)

    @pytest.mark.asyncio
    async def test_insert_records_created_change(self, session_factory) -> None:
        run_id = await self._run_id(session_factory)
        row = map_project_entry({"ID": "P1", "Name1": "Alpha", "Quoted3": "100"})

        outcome = await self._upsert(session_factory, RecordKind.PROJECTS, run_id, row)

        assert outcome == UpsertOutcome.CREATED
        changes = await self._changes(session_factory, run_id)
        assert [(c.change_type, c.external_id, c.entity_type, c.field_name) for c in changes] == [
            ("CREATED", "P1", "PROJECT", None)
        ]
        async with session_factory() as db:
            stored = await RecordRepository(db).get_by_external_id(RecordKind.PROJECTS, "P1")
        assert stored.project_name == "Alpha"
        assert changes[0].entity_id == stored.id

    @pytest.mark.asyncio
    async def test_identical_row_is_unchanged(self, session_factory) -> None:
        run_id = await self._run_id(session_factory)
        row = map_project_entry({"ID": "P1", "Name1": "Alpha", "Quoted3": "100"})
        await self._upsert(session_factory, RecordKind.PROJECTS, run_id, row)

        outcome = await self._upsert(session_factory, RecordKind.PROJECTS, run_id, dict(row))

        assert outcome == UpsertOutcome.UNCHANGED
        assert len(await self._changes(session_factory, run_id)) == 1

    @pytest.mark.asyncio
    async def test_numeric_tolerance_on_stored_record(self, session_factory) -> None:
        run_id = await self._run_id(session_factory)
        row = map_project_entry({"ID": "P1", "Quoted3": "100"})
        await self._upsert(session_factory, RecordKind.PROJECTS, run_id, row)

        within = await self._upsert(session_factory, RecordKind.PROJECTS, run_id, {**row, "budget": 100.005})
        above = await self._upsert(session_factory, RecordKind.PROJECTS, run_id, {**row, "budget": 100.02})

        assert within == UpsertOutcome.UNCHANGED
        assert above == UpsertOutcome.UPDATED
        updates = [c for c in await self._changes(session_factory, run_id) if c.change_type == "UPDATED"]
        assert [(c.field_name, c.old_value, c.new_value) for c in updates] == [("budget", "100", "100.02")]

    @pytest.mark.asyncio
    async def test_update_writes_one_change_per_field(self, session_factory) -> None:
        run_id = await self._run_id(session_factory)
        row = map_opportunity_entry({"Opp_RecID": "O1", "Stage": "Lead", "Probability": "10"})
        await self._upsert(session_factory, RecordKind.OPPORTUNITIES, run_id, row)

        changed = map_opportunity_entry({"Opp_RecID": "O1", "Stage": "Won", "Probability": "100"})
        outcome = await self._upsert(session_factory, RecordKind.OPPORTUNITIES, run_id, changed)

        assert outcome == UpsertOutcome.UPDATED
        updates = [c for c in await self._changes(session_factory, run_id) if c.change_type == "UPDATED"]
        assert {(c.field_name, c.old_value, c.new_value) for c in updates} == {
            ("stage", "Lead", "Won"),
            ("probability", "10", "100"),
        }
        assert all(c.entity_type == "OPPORTUNITY" for c in updates)
        async with session_factory() as db:
            stored = await RecordRepository(db).get_by_external_id(RecordKind.OPPORTUNITIES, "O1")
            assert stored.stage == "Won"
            assert stored.probability == 100
            assert await RecordRepository(db).count(RecordKind.OPPORTUNITIES) == 1

    @pytest.mark.asyncio
    async def test_raw_data_only_change_is_not_written(self, session_factory) -> None:
        """raw_data no esta entre los campos comparados."""
        run_id = await self._run_id(session_factory)
        row = map_project_entry({"ID": "P1", "Name1": "Alpha"})
        await self._upsert(session_factory, RecordKind.PROJECTS, run_id, row)

        outcome = await self._upsert(session_factory, RecordKind.PROJECTS, run_id, {**row, "raw_data": "{}"})

        assert outcome == UpsertOutcome.UNCHANGED
        async with session_factory() as db:
            stored = await RecordRepository(db).get_by_external_id(RecordKind.PROJECTS, "P1")
        assert stored.raw_data == row["raw_data"]
