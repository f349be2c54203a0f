"""
Repositorio de corridas de sync (sync_runs).

La invariante de una sola corrida en vuelo por tipo la garantiza el indice
unico parcial de la tabla; este repositorio traduce la violacion a
ConcurrencyConflict.
"""
from typing import Any, Iterable, List, Optional

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.database.models import SyncRunModel
from feedsync.shared.constants.sync_constants import (
    IN_FLIGHT_STATUSES,
    SyncStatus,
    TriggerSource,
)
from feedsync.shared.exceptions.domain import ConcurrencyConflict


def _values(statuses: Iterable[Any]) -> List[str]:
    return [str(getattr(s, "value", s)) for s in statuses]


class SyncRunRepository:
    """Repositorio para el ciclo de vida de las corridas."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_pending(self, kind: str, triggered_by: str = TriggerSource.MANUAL.value) -> SyncRunModel:
        """
        Inserta una corrida PENDING.

        Raises:
            ConcurrencyConflict: Si ya existe una corrida PENDING/RUNNING del mismo tipo
        """
        kind_value = str(getattr(kind, "value", kind))
        run = SyncRunModel(
            kind=kind_value,
            status=SyncStatus.PENDING.value,
            triggered_by=str(getattr(triggered_by, "value", triggered_by)),
        )
        self.db.add(run)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_in_flight(kind_value)
            raise ConcurrencyConflict(kind_value, existing.id if existing else None)
        # created_at lo asigna la base
        await self.db.refresh(run)
        return run

    async def get_by_id(self, run_id: int) -> Optional[SyncRunModel]:
        result = await self.db.execute(select(SyncRunModel).where(SyncRunModel.id == run_id))
        return result.scalars().first()

    async def get_in_flight(self, kind: str) -> Optional[SyncRunModel]:
        """Retorna la corrida PENDING/RUNNING de un tipo, si existe."""
        result = await self.db.execute(
            select(SyncRunModel)
            .where(SyncRunModel.kind == str(getattr(kind, "value", kind)))
            .where(SyncRunModel.status.in_(_values(IN_FLIGHT_STATUSES)))
            .order_by(SyncRunModel.id.desc())
        )
        return result.scalars().first()

    async def transition(
        self,
        run_id: int,
        status: SyncStatus,
        from_statuses: Iterable[SyncStatus] = IN_FLIGHT_STATUSES,
        **values: Any,
    ) -> bool:
        """
        Cambia el estado de una corrida solo si su estado actual esta en from_statuses.

        Returns:
            True si la corrida fue actualizada
        """
        stmt = (
            update(SyncRunModel)
            .where(SyncRunModel.id == run_id)
            .where(SyncRunModel.status.in_(_values(from_statuses)))
            .values(status=str(getattr(status, "value", status)), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        updated = result.rowcount == 1
        if not updated:
            logger.debug(f"Transicion ignorada: corrida {run_id} -> {status} (estado actual fuera de {_values(from_statuses)})")
        return updated

    async def list_in_state(self, statuses: Iterable[SyncStatus]) -> List[SyncRunModel]:
        result = await self.db.execute(
            select(SyncRunModel)
            .where(SyncRunModel.status.in_(_values(statuses)))
            .order_by(SyncRunModel.id)
        )
        return list(result.scalars().all())

    async def history(
        self,
        kind: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[SyncRunModel]:
        """Corridas mas recientes primero, con filtros opcionales."""
        query = select(SyncRunModel)
        if kind:
            query = query.where(SyncRunModel.kind == str(getattr(kind, "value", kind)))
        if status:
            query = query.where(SyncRunModel.status == str(getattr(status, "value", status)))
        query = query.order_by(SyncRunModel.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def last_completed(self, kind: str) -> Optional[SyncRunModel]:
        result = await self.db.execute(
            select(SyncRunModel)
            .where(SyncRunModel.kind == str(getattr(kind, "value", kind)))
            .where(SyncRunModel.status == SyncStatus.COMPLETED.value)
            .order_by(SyncRunModel.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def count_in_flight(self) -> int:
        result = await self.db.execute(
            select(func.count(SyncRunModel.id)).where(SyncRunModel.status.in_(_values(IN_FLIGHT_STATUSES)))
        )
        return int(result.scalar_one())

    async def delete_all(self) -> int:
        result = await self.db.execute(delete(SyncRunModel))
        return result.rowcount or 0
