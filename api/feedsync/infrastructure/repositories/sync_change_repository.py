"""
Repositorio del historial de cambios (sync_changes). Solo se agrega.
"""
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.database.models import SyncChangeModel


class SyncChangeRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        run_id: int,
        entity_type: str,
        entity_id: int,
        external_id: Optional[str],
        change_type: str,
        field_name: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> SyncChangeModel:
        change = SyncChangeModel(
            sync_run_id=run_id,
            entity_type=str(getattr(entity_type, "value", entity_type)),
            entity_id=entity_id,
            external_id=external_id,
            change_type=str(getattr(change_type, "value", change_type)),
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
        )
        self.db.add(change)
        await self.db.flush()
        return change

    async def list_for_run(self, run_id: int) -> List[SyncChangeModel]:
        result = await self.db.execute(
            select(SyncChangeModel)
            .where(SyncChangeModel.sync_run_id == run_id)
            .order_by(SyncChangeModel.id)
        )
        return list(result.scalars().all())

    async def delete_all(self) -> int:
        result = await self.db.execute(delete(SyncChangeModel))
        return result.rowcount or 0
