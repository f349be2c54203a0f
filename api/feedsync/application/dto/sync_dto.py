"""
DTOs del motor de sincronizacion.
Definen la estructura de datos que se expone a los consumidores
(CLI, capa de UI externa, listeners de eventos).
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from feedsync.shared.utils.datetime_utils import DateTimeUtils


class SyncRunDTO(BaseModel):
    """Corrida de sync."""

    id: int
    kind: str
    status: str
    triggered_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_unchanged: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class SyncCountsDTO(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0


class SyncEventDTO(BaseModel):
    """
    Evento del ciclo de vida emitido por el orquestador.

    event: progress | completed | failed
    counts solo viene en completed.
    """

    event: str
    run_id: int
    kind: str
    status: str
    message: Optional[str] = None
    counts: Optional[SyncCountsDTO] = None
    emitted_at: datetime = Field(default_factory=DateTimeUtils.now_utc)


class FieldChangeDTO(BaseModel):
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


class EntityChangeSummaryDTO(BaseModel):
    """Cambios de una corrida agrupados por entidad."""

    entity_type: str
    entity_id: int
    external_id: Optional[str] = None
    change_type: str
    fields: List[FieldChangeDTO] = Field(default_factory=list)


class KindStatusDTO(BaseModel):
    """Estado de un tipo de registro: ultimo sync exitoso y corrida en vuelo."""

    kind: str
    last_completed_at: Optional[datetime] = None
    last_records_processed: int = 0
    in_flight: Optional[SyncRunDTO] = None


class SyncStatusDTO(BaseModel):
    kinds: Dict[str, KindStatusDTO] = Field(default_factory=dict)
    active_runs: List[SyncRunDTO] = Field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return bool(self.active_runs)


class ClearHistoryResultDTO(BaseModel):
    message: str
    deleted_history: int
    deleted_changes: int


class FeedTestResultDTO(BaseModel):
    """Resultado de probar la conectividad de un feed."""

    success: bool
    record_count: int = 0
    sample_fields: List[str] = Field(default_factory=list)
    error: Optional[str] = None
