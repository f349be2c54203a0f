"""
Servicios de aplicacion.

Contiene la logica de negocio reutilizable del pipeline de ingesta
que no pertenece a un caso de uso especifico.
"""
from feedsync.application.services.field_mapper import (
    MAPPERS,
    map_entry,
    map_project_entry,
    map_opportunity_entry,
    map_service_ticket_entry,
)
from feedsync.application.services.detail_enricher import DetailEnricher, apply_detail
from feedsync.application.services.change_detector import (
    COMPARED_FIELDS,
    FieldChange,
    RecordUpsertEngine,
    UpsertOutcome,
    compare_fields,
)
from feedsync.application.services.sync_settings import SyncSettings, load_sync_settings

__all__ = [
    # Mapeo
    "MAPPERS",
    "map_entry",
    "map_project_entry",
    "map_opportunity_entry",
    "map_service_ticket_entry",
    # Detalle
    "DetailEnricher",
    "apply_detail",
    # Cambios
    "COMPARED_FIELDS",
    "FieldChange",
    "RecordUpsertEngine",
    "UpsertOutcome",
    "compare_fields",
    # Configuracion
    "SyncSettings",
    "load_sync_settings",
]
