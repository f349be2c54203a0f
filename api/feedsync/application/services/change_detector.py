"""
Deteccion de cambios y upsert de registros canonicos.

Para cada registro mapeado:
- si no existe (por external_id): INSERT + un cambio CREATED
- si existe: compara un subconjunto fijo de campos; cada diferencia genera
  un cambio UPDATED y el registro se sobrescribe completo
- sin diferencias no se escribe nada
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.repositories.record_repository import RecordRepository
from feedsync.infrastructure.repositories.sync_change_repository import SyncChangeRepository
from feedsync.shared.constants.sync_constants import ChangeType, ENTITY_TYPE_BY_KIND, RecordKind
from feedsync.shared.utils.text_utils import parse_number

# Diferencias numericas menores o iguales a esto no cuentan como cambio
NUMERIC_TOLERANCE = 0.01

COMPARED_FIELDS: Dict[RecordKind, Sequence[str]] = {
    RecordKind.PROJECTS: (
        "client_name", "project_name", "budget", "spent", "hours_estimate",
        "hours_actual", "hours_remaining", "status", "is_active", "notes",
        "detail_raw_data",
    ),
    RecordKind.OPPORTUNITIES: (
        "opportunity_name", "company_name", "sales_rep", "stage",
        "expected_revenue", "close_date", "probability", "notes",
    ),
    RecordKind.SERVICE_TICKETS: (
        "summary", "status", "priority", "assigned_to", "company_name",
        "board_name", "due_date", "hours_estimate", "hours_actual",
        "hours_remaining", "budget", "notes",
    ),
}


class UpsertOutcome(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Optional[str]
    new_value: Optional[str]


def _read(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def to_text(value: Any) -> str:
    """Representacion normalizada para comparar y guardar en el historial."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def compare_fields(existing: Any, new: Any, fields: Sequence[str]) -> List[FieldChange]:
    """
    Compara dos registros campo a campo.

    Si alguno de los dos valores es numerico, se comparan como numeros con
    tolerancia NUMERIC_TOLERANCE (lo no parseable vale 0). Si no, se comparan
    como texto con None equivalente a "".
    """
    changes: List[FieldChange] = []
    for field in fields:
        old_value = _read(existing, field)
        new_value = _read(new, field)
        old_text = to_text(old_value)
        new_text = to_text(new_value)

        if _is_number(old_value) or _is_number(new_value):
            old_number = parse_number(old_text) or 0.0
            new_number = parse_number(new_text) or 0.0
            # Redondeo para que 100.00 -> 100.01 quede dentro de la tolerancia
            differs = round(abs(old_number - new_number), 9) > NUMERIC_TOLERANCE
        else:
            differs = old_text != new_text

        if differs:
            changes.append(FieldChange(field, old_text or None, new_text or None))
    return changes


class RecordUpsertEngine:
    """
    Persiste un registro mapeado y su rastro de auditoria.

    No hace commit: el caller decide la transaccion (una por registro).
    """

    def __init__(self, compared_fields: Optional[Dict[RecordKind, Sequence[str]]] = None):
        self._compared_fields = compared_fields or COMPARED_FIELDS

    async def upsert(self, db: AsyncSession, kind: RecordKind, run_id: int, row: Dict[str, Any]) -> UpsertOutcome:
        kind = RecordKind(kind)
        records = RecordRepository(db)
        changes = SyncChangeRepository(db)
        entity_type = ENTITY_TYPE_BY_KIND[kind]
        external_id = row["external_id"]

        existing = await records.get_by_external_id(kind, external_id)
        if existing is None:
            created = await records.insert(kind, row)
            await changes.append(run_id, entity_type, created.id, external_id, ChangeType.CREATED)
            return UpsertOutcome.CREATED

        diffs = compare_fields(existing, row, self._compared_fields[kind])
        if not diffs:
            return UpsertOutcome.UNCHANGED

        for diff in diffs:
            await changes.append(
                run_id,
                entity_type,
                existing.id,
                external_id,
                ChangeType.UPDATED,
                field_name=diff.field,
                old_value=diff.old_value,
                new_value=diff.new_value,
            )
        await records.update(existing, row)
        return UpsertOutcome.UPDATED
