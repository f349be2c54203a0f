"""
Tipos compartidos del pipeline de feeds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

# Una entrada del feed: nombre de columna -> valor crudo (string)
Entry = Dict[str, str]


@dataclass(frozen=True)
class CleanResult:
    """Resultado de limpiar una URL plantilla."""

    url: str
    removed: FrozenSet[str] = frozenset()
    kept: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class DetailResult:
    """
    Campos de detalle fusionados para un proyecto.

    all_fields: mapa fusionado (claves con prefijo de region + claves comunes)
    status: primer status no vacio encontrado entre las regiones
    regions_with_data: regiones que devolvieron al menos una entrada
    """

    all_fields: Dict[str, Any]
    status: Optional[str] = None
    regions_with_data: tuple[str, ...] = ()


@dataclass
class SyncCounts:
    """Contadores de una corrida (o de un feed dentro de la corrida)."""

    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    feeds: list[int] = field(default_factory=list)

    def merge(self, other: "SyncCounts") -> "SyncCounts":
        self.total += other.total
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.failed += other.failed
        self.feeds.extend(other.feeds)
        return self
