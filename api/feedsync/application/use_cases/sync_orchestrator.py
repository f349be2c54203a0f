"""
Orquestador de corridas de sync.

Maquina de estados por tipo de registro:
    PENDING -> RUNNING -> COMPLETED | FAILED

- Una sola corrida PENDING/RUNNING por tipo (indice unico parcial en la BD
  + lock en proceso). No hay cola: una solicitud duplicada se rechaza.
- Cada corrida es una asyncio.Task; tipos distintos corren en paralelo.
- Cancelar solo marca la corrida como FAILED; no interrumpe I/O en curso.
- Al iniciar, las corridas que quedaron en vuelo de un proceso anterior se
  marcan FAILED antes de aceptar solicitudes nuevas.

El estado en memoria (corridas activas, listeners) pertenece a la instancia.
"""
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedsync.application.dto.sync_dto import (
    ClearHistoryResultDTO,
    EntityChangeSummaryDTO,
    FieldChangeDTO,
    KindStatusDTO,
    SyncCountsDTO,
    SyncEventDTO,
    SyncRunDTO,
    SyncStatusDTO,
)
from feedsync.application.services.sync_settings import SyncSettings, load_sync_settings
from feedsync.application.use_cases.feed_sync_use_cases import FeedSyncUseCases
from feedsync.infrastructure.external.report_feeds.types import SyncCounts
from feedsync.infrastructure.repositories.feed_repository import FeedRepository
from feedsync.infrastructure.repositories.sync_change_repository import SyncChangeRepository
from feedsync.infrastructure.repositories.sync_run_repository import SyncRunRepository
from feedsync.shared.constants.sync_constants import (
    CANCELLED_BY_USER_MESSAGE,
    ChangeType,
    IN_FLIGHT_STATUSES,
    INTERRUPTED_BY_RESTART_MESSAGE,
    MAX_ERROR_MESSAGE_LENGTH,
    RecordKind,
    SYNC_ALL,
    SyncEventType,
    SyncStatus,
    TriggerSource,
)
from feedsync.shared.exceptions.domain import (
    ConcurrencyConflict,
    HistoryInUseError,
    InvalidRunTransition,
    SyncRunNotFound,
)
from feedsync.shared.exceptions.sync import ConfigurationError
from feedsync.shared.utils.datetime_utils import DateTimeUtils

SyncListener = Callable[[SyncEventDTO], Union[None, Awaitable[None]]]
SettingsLoader = Callable[[AsyncSession], Awaitable[SyncSettings]]


def expand_kinds(kind: Union[str, RecordKind]) -> List[RecordKind]:
    """ALL se expande a un tipo concreto por cada RecordKind."""
    value = str(getattr(kind, "value", kind)).upper()
    if value == SYNC_ALL:
        return list(RecordKind)
    try:
        return [RecordKind(value)]
    except ValueError:
        raise ValueError(f"Tipo de sync no soportado: {kind}")


class SyncOrchestrator:
    """
    Secuencia y protege las corridas de sync.

    Uso:
        orchestrator = SyncOrchestrator(AsyncSessionLocal, client)
        await orchestrator.start()
        run_ids = await orchestrator.request_sync("ALL")
        await orchestrator.wait(run_ids)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client: Any,
        *,
        feed_sync: Optional[FeedSyncUseCases] = None,
        settings_loader: SettingsLoader = load_sync_settings,
    ):
        self._session_factory = session_factory
        self._feed_sync = feed_sync or FeedSyncUseCases(session_factory, client)
        self._settings_loader = settings_loader
        self._listeners: List[SyncListener] = []
        self._tasks: Dict[int, asyncio.Task] = {}
        self._active: Dict[int, SyncRunDTO] = {}
        self._request_lock = asyncio.Lock()
        self._recovered = False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SyncListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def _emit(self, event: SyncEventDTO) -> None:
        """Notifica a los listeners; un listener que falla no afecta la corrida."""
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error en listener de sync: {e}")

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self) -> int:
        """Recuperacion de arranque. Retorna la cantidad de corridas recuperadas."""
        async with self._request_lock:
            return await self.recover_interrupted_runs()

    async def recover_interrupted_runs(self) -> int:
        """
        Marca FAILED las corridas PENDING/RUNNING que no pertenecen a este proceso.
        """
        now = DateTimeUtils.now_utc()
        recovered = 0
        async with self._session_factory() as db:
            repo = SyncRunRepository(db)
            for run in await repo.list_in_state(IN_FLIGHT_STATUSES):
                if run.id in self._tasks:
                    continue
                updated = await repo.transition(
                    run.id,
                    SyncStatus.FAILED,
                    IN_FLIGHT_STATUSES,
                    completed_at=now,
                    error_message=INTERRUPTED_BY_RESTART_MESSAGE,
                )
                if updated:
                    recovered += 1
                    logger.warning(f"Corrida {run.id} ({run.kind}) interrumpida por reinicio; marcada FAILED")
            await db.commit()

        self._recovered = True
        if recovered:
            logger.info(f"Recuperacion de arranque: {recovered} corrida(s) marcadas FAILED")
        return recovered

    async def request_sync(
        self,
        kind: Union[str, RecordKind],
        triggered_by: Union[str, TriggerSource] = TriggerSource.MANUAL,
    ) -> List[int]:
        """
        Crea corridas PENDING y agenda su ejecucion.

        ALL es todo o nada: si algun tipo ya tiene una corrida en vuelo,
        no se crea ninguna.

        Raises:
            ConcurrencyConflict: Si algun tipo ya tiene una corrida PENDING/RUNNING
            ValueError: Si el tipo no es soportado
        """
        kinds = expand_kinds(kind)
        trigger = str(getattr(triggered_by, "value", triggered_by))

        async with self._request_lock:
            if not self._recovered:
                await self.recover_interrupted_runs()

            async with self._session_factory() as db:
                repo = SyncRunRepository(db)
                for k in kinds:
                    existing = await repo.get_in_flight(k)
                    if existing is not None:
                        raise ConcurrencyConflict(k.value, existing.id)

                runs = [await repo.create_pending(k, trigger) for k in kinds]
                await db.commit()
                created = [(run.id, RecordKind(run.kind), self._to_dto(run)) for run in runs]

            for run_id, run_kind, dto in created:
                self._active[run_id] = dto
                task = asyncio.create_task(self._execute(run_id, run_kind), name=f"sync-{run_kind.value}-{run_id}")
                self._tasks[run_id] = task
                task.add_done_callback(lambda _t, rid=run_id: self._tasks.pop(rid, None))
                logger.info(f"Sync {run_kind.value} solicitado (corrida {run_id}, origen {trigger})")

        return [run_id for run_id, _, _ in created]

    async def _execute(self, run_id: int, kind: RecordKind) -> None:
        log = logger.bind(run_id=run_id, kind=kind.value)
        totals = SyncCounts()
        try:
            async with self._session_factory() as db:
                started = await SyncRunRepository(db).transition(
                    run_id,
                    SyncStatus.RUNNING,
                    (SyncStatus.PENDING,),
                    started_at=DateTimeUtils.now_utc(),
                )
                await db.commit()
            if not started:
                log.info(f"Corrida {run_id} cancelada antes de iniciar")
                return

            self._set_active_status(run_id, SyncStatus.RUNNING)
            await self._emit_event(SyncEventType.PROGRESS, run_id, kind, SyncStatus.RUNNING, f"Starting {kind.value} sync")

            async with self._session_factory() as db:
                sync_settings = await self._settings_loader(db)
                feeds = await FeedRepository(db).get_by_kind(kind.value, active_only=True)

            if not feeds:
                raise ConfigurationError(
                    f"No active {kind.value} feed configured. Import and activate a {kind.value} feed first.",
                    kind=kind.value,
                )

            for feed in feeds:
                counts = await self._feed_sync.sync_feed(feed, kind, run_id, sync_settings)
                totals.merge(counts)
                async with self._session_factory() as db:
                    await FeedRepository(db).touch_last_sync(feed.id, DateTimeUtils.now_utc())
                    await db.commit()
                await self._emit_event(
                    SyncEventType.PROGRESS,
                    run_id,
                    kind,
                    SyncStatus.RUNNING,
                    f"Feed '{feed.name}' synced ({counts.total} records)",
                )

            async with self._session_factory() as db:
                completed = await SyncRunRepository(db).transition(
                    run_id,
                    SyncStatus.COMPLETED,
                    (SyncStatus.RUNNING,),
                    completed_at=DateTimeUtils.now_utc(),
                    **self._count_values(totals),
                )
                await db.commit()

            if not completed:
                log.info(f"Corrida {run_id} fue cancelada durante la ejecucion; resultado descartado")
                return

            log.success(
                f"Sync {kind.value} completado: total={totals.total} creados={totals.created} "
                f"actualizados={totals.updated} sin_cambios={totals.unchanged}"
            )
            await self._emit_event(
                SyncEventType.COMPLETED,
                run_id,
                kind,
                SyncStatus.COMPLETED,
                counts=SyncCountsDTO(
                    total=totals.total,
                    created=totals.created,
                    updated=totals.updated,
                    unchanged=totals.unchanged,
                ),
            )
        except asyncio.CancelledError:
            log.warning(f"Tarea de la corrida {run_id} cancelada; se recuperara en el proximo arranque")
            raise
        except Exception as e:
            message = str(e)[:MAX_ERROR_MESSAGE_LENGTH]
            log.error(f"Sync {kind.value} fallido: {message}")
            await self._fail_run(run_id, kind, message, totals)
        finally:
            self._active.pop(run_id, None)

    async def _fail_run(self, run_id: int, kind: RecordKind, message: str, totals: SyncCounts) -> None:
        try:
            async with self._session_factory() as db:
                failed = await SyncRunRepository(db).transition(
                    run_id,
                    SyncStatus.FAILED,
                    IN_FLIGHT_STATUSES,
                    completed_at=DateTimeUtils.now_utc(),
                    error_message=message,
                    **self._count_values(totals),
                )
                await db.commit()
        except Exception as e:
            logger.error(f"No se pudo marcar FAILED la corrida {run_id}: {e}")
            return
        if failed:
            await self._emit_event(SyncEventType.FAILED, run_id, kind, SyncStatus.FAILED, message)

    async def cancel_sync(self, run_id: int) -> SyncRunDTO:
        """
        Marca una corrida en vuelo como FAILED ("Cancelled by user").

        Raises:
            SyncRunNotFound: Si la corrida no existe
            InvalidRunTransition: Si la corrida ya termino
        """
        async with self._session_factory() as db:
            repo = SyncRunRepository(db)
            run = await repo.get_by_id(run_id)
            if run is None:
                raise SyncRunNotFound(run_id)

            cancelled = await repo.transition(
                run_id,
                SyncStatus.FAILED,
                IN_FLIGHT_STATUSES,
                completed_at=DateTimeUtils.now_utc(),
                error_message=CANCELLED_BY_USER_MESSAGE,
            )
            await db.commit()
            if not cancelled:
                raise InvalidRunTransition(run_id, run.status)

            db.expire_all()
            run = await repo.get_by_id(run_id)
            dto = self._to_dto(run)

        self._active.pop(run_id, None)
        logger.info(f"Corrida {run_id} ({dto.kind}) cancelada por el usuario")
        await self._emit_event(
            SyncEventType.FAILED, run_id, RecordKind(dto.kind), SyncStatus.FAILED, CANCELLED_BY_USER_MESSAGE
        )
        return dto

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def active_runs(self) -> List[SyncRunDTO]:
        """Corridas en vuelo lanzadas por esta instancia."""
        return list(self._active.values())

    async def get_status(self) -> SyncStatusDTO:
        status = SyncStatusDTO()
        async with self._session_factory() as db:
            repo = SyncRunRepository(db)
            for kind in RecordKind:
                last = await repo.last_completed(kind.value)
                in_flight = await repo.get_in_flight(kind.value)
                status.kinds[kind.value] = KindStatusDTO(
                    kind=kind.value,
                    last_completed_at=last.completed_at if last else None,
                    last_records_processed=last.records_processed if last else 0,
                    in_flight=self._to_dto(in_flight) if in_flight else None,
                )
            status.active_runs = [self._to_dto(r) for r in await repo.list_in_state(IN_FLIGHT_STATUSES)]
        return status

    async def get_history(
        self,
        kind: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[SyncRunDTO]:
        async with self._session_factory() as db:
            runs = await SyncRunRepository(db).history(kind=kind, status=status, limit=limit, offset=offset)
            return [self._to_dto(r) for r in runs]

    async def get_run(self, run_id: int) -> SyncRunDTO:
        async with self._session_factory() as db:
            run = await SyncRunRepository(db).get_by_id(run_id)
            if run is None:
                raise SyncRunNotFound(run_id)
            return self._to_dto(run)

    async def get_changes(self, run_id: int) -> List[EntityChangeSummaryDTO]:
        """Cambios de una corrida agrupados por entidad, en orden de registro."""
        async with self._session_factory() as db:
            changes = await SyncChangeRepository(db).list_for_run(run_id)

        grouped: Dict[tuple, EntityChangeSummaryDTO] = {}
        for change in changes:
            key = (change.entity_type, change.entity_id)
            summary = grouped.get(key)
            if summary is None:
                summary = EntityChangeSummaryDTO(
                    entity_type=change.entity_type,
                    entity_id=change.entity_id,
                    external_id=change.external_id,
                    change_type=change.change_type,
                )
                grouped[key] = summary
            if change.change_type == ChangeType.CREATED.value:
                summary.change_type = ChangeType.CREATED.value
            if change.field_name:
                summary.fields.append(
                    FieldChangeDTO(field=change.field_name, old_value=change.old_value, new_value=change.new_value)
                )
        return list(grouped.values())

    async def clear_history(self) -> ClearHistoryResultDTO:
        """
        Borra todo el historial de corridas y cambios.

        Raises:
            HistoryInUseError: Si hay corridas PENDING/RUNNING
        """
        async with self._session_factory() as db:
            runs = SyncRunRepository(db)
            in_flight = await runs.count_in_flight()
            if in_flight:
                raise HistoryInUseError(in_flight)
            deleted_changes = await SyncChangeRepository(db).delete_all()
            deleted_history = await runs.delete_all()
            await db.commit()

        logger.info(f"Historial de sync borrado: {deleted_history} corridas, {deleted_changes} cambios")
        return ClearHistoryResultDTO(
            message=f"Cleared {deleted_history} sync records and {deleted_changes} change records",
            deleted_history=deleted_history,
            deleted_changes=deleted_changes,
        )

    # ------------------------------------------------------------------
    # Espera y cierre
    # ------------------------------------------------------------------

    async def wait(self, run_ids: Optional[Iterable[int]] = None) -> List[SyncRunDTO]:
        """Espera las tareas indicadas (o todas) y retorna el estado final de cada corrida."""
        ids = list(run_ids) if run_ids is not None else list(self._tasks.keys())
        tasks = [self._tasks[i] for i in ids if i in self._tasks]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        async with self._session_factory() as db:
            repo = SyncRunRepository(db)
            results = []
            for run_id in ids:
                run = await repo.get_by_id(run_id)
                if run is not None:
                    results.append(self._to_dto(run))
        return results

    async def shutdown(self) -> None:
        """Cancela las tareas pendientes; sus corridas se recuperan al proximo arranque."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"{len(tasks)} tarea(s) de sync canceladas por cierre")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_active_status(self, run_id: int, status: SyncStatus) -> None:
        dto = self._active.get(run_id)
        if dto is not None:
            self._active[run_id] = dto.model_copy(update={"status": status.value})

    async def _emit_event(
        self,
        event: SyncEventType,
        run_id: int,
        kind: RecordKind,
        status: SyncStatus,
        message: Optional[str] = None,
        counts: Optional[SyncCountsDTO] = None,
    ) -> None:
        await self._emit(
            SyncEventDTO(
                event=event.value,
                run_id=run_id,
                kind=kind.value,
                status=status.value,
                message=message,
                counts=counts,
            )
        )

    @staticmethod
    def _count_values(totals: SyncCounts) -> Dict[str, int]:
        return {
            "records_processed": totals.total,
            "records_created": totals.created,
            "records_updated": totals.updated,
            "records_unchanged": totals.unchanged,
        }

    @staticmethod
    def _to_dto(run: Any) -> SyncRunDTO:
        return SyncRunDTO.model_validate(run)
