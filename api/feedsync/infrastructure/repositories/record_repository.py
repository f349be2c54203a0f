"""
Repositorio de registros canonicos (proyectos, oportunidades, tickets).

Las tres tablas comparten la clave de negocio external_id; el tipo de
registro decide la tabla.
"""
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.database.models import (
    OpportunityModel,
    ProjectModel,
    ServiceTicketModel,
)
from feedsync.shared.constants.sync_constants import RecordKind


MODEL_BY_KIND = {
    RecordKind.PROJECTS: ProjectModel,
    RecordKind.OPPORTUNITIES: OpportunityModel,
    RecordKind.SERVICE_TICKETS: ServiceTicketModel,
}


def model_for_kind(kind: RecordKind):
    try:
        return MODEL_BY_KIND[RecordKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"Tipo de registro no soportado: {kind}")


class RecordRepository:
    """Lectura e insert/update de registros canonicos por external_id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_external_id(self, kind: RecordKind, external_id: str) -> Optional[Any]:
        model = model_for_kind(kind)
        result = await self.db.execute(select(model).where(model.external_id == external_id))
        return result.scalars().first()

    async def count(self, kind: RecordKind) -> int:
        model = model_for_kind(kind)
        result = await self.db.execute(select(func.count(model.id)))
        return int(result.scalar_one())

    async def insert(self, kind: RecordKind, row: Dict[str, Any]) -> Any:
        """
        Inserta un registro nuevo y retorna la instancia con su id asignado.
        """
        model = model_for_kind(kind)
        columns = set(model.__table__.columns.keys())
        record = model(**{k: v for k, v in row.items() if k in columns})
        self.db.add(record)
        await self.db.flush()
        return record

    async def update(self, record: Any, row: Dict[str, Any]) -> Any:
        """
        Sobrescribe las columnas del registro con los valores del row mapeado.
        external_id nunca cambia.
        """
        columns = set(record.__table__.columns.keys()) - {"id", "external_id", "created_at", "updated_at"}
        for key, value in row.items():
            if key in columns:
                setattr(record, key, value)
        await self.db.flush()
        return record
