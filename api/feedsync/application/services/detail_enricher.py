"""
Enriquecimiento de proyectos con el feed de detalle (sync adaptativo).

El reporte de detalle se consulta una vez por region (rc:ItemPath) con el
id del proyecto sustituido. De cada region solo se usa la primera fila;
las siguientes suelen ser filas de totales o ruido.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from feedsync.application.services.field_mapper import is_active_status
from feedsync.infrastructure.external.report_feeds.entry_parser import parse_entries
from feedsync.infrastructure.external.report_feeds.types import DetailResult, Entry
from feedsync.infrastructure.external.report_feeds.url_templater import create_detail_url
from feedsync.shared.exceptions.sync import FeedFetchError, ParseError
from feedsync.shared.utils.text_utils import clean_html_entities, is_blank, parse_number

# Regiones del reporte de detalle, en orden de prioridad
DETAIL_REGIONS = (
    "Tablix1",   # Encabezado: Company, Name, Status, End_Date
    "Tablix2",   # Finanzas: Quoted, Estimated_Cost, Actual_Cost, Billable, Invoiced
    "Tablix15",  # Horas: Hours_Budget, Hours_Actual, Hours_Remaining
    "Tablix16",  # Horas por rol: Work_Role, Time
    "Tablix8",   # Registros de tiempo (primera fila con totales)
    "Tablix10",  # Hardware y gastos (primera fila con totales)
)

# Claves que ademas se guardan sin prefijo de region
COMMON_DETAIL_KEYS = frozenset({
    "Company", "Name", "Status", "End_Date", "Quoted", "Estimated_Cost", "Actual_Cost",
    "Billable", "Invoiced", "WIP21", "CIA_Remaining", "Hours_Budget", "Hours_Actual",
    "Hours_Remaining", "Work_Role", "ReportTitle",
})

DETAIL_STATUS_KEYS = ("Status", "status", "ProjectStatus", "Project_Status")
DETAIL_HOURS_BUDGET_KEYS = ("Hours_Budget", "HoursBudget")
DETAIL_HOURS_ACTUAL_KEYS = ("Hours_Actual", "HoursActual")
DETAIL_HOURS_REMAINING_KEYS = ("Textbox319", "Hours_Remaining", "HoursRemaining")


class DetailEnricher:
    """
    Obtiene y fusiona los campos de detalle de un proyecto.

    Una region que falla o no trae filas se omite; el enriquecimiento solo
    falla (retorna None) si ninguna region trajo datos.
    """

    def __init__(
        self,
        client: Any,
        *,
        parse: Callable[[bytes], List[Entry]] = parse_entries,
        regions: Sequence[str] = DETAIL_REGIONS,
    ) -> None:
        self._client = client
        self._parse = parse
        self._regions = tuple(regions)

    async def fetch_detail(self, template_url: str, project_id: str) -> Optional[DetailResult]:
        all_fields: Dict[str, Any] = {}
        found_status: Optional[str] = None
        regions_with_data: List[str] = []

        for region in self._regions:
            url = create_detail_url(template_url, project_id, region)
            try:
                data = await asyncio.to_thread(self._client.fetch, url)
                entries = self._parse(data)
            except (FeedFetchError, ParseError) as e:
                logger.debug(f"Detalle {project_id}/{region}: omitida ({e.error_code})")
                continue

            if not entries:
                logger.debug(f"Detalle {project_id}/{region}: sin filas")
                continue

            regions_with_data.append(region)
            entry = entries[0]
            for key, value in entry.items():
                if is_blank(value):
                    continue
                cleaned = clean_html_entities(value)
                if key in COMMON_DETAIL_KEYS:
                    all_fields[key] = cleaned
                all_fields[f"{region}_{key}"] = cleaned

            if len(entries) > 1:
                all_fields[f"{region}_RowCount"] = len(entries)

            if found_status is None:
                status = next((entry[k] for k in DETAIL_STATUS_KEYS if not is_blank(entry.get(k))), None)
                if status:
                    found_status = clean_html_entities(status)

        if not regions_with_data:
            logger.info(f"Sin datos de detalle para el proyecto {project_id}")
            return None

        logger.debug(
            f"Detalle {project_id}: {len(all_fields)} campos de {len(regions_with_data)} regiones"
        )
        return DetailResult(
            all_fields=all_fields,
            status=found_status,
            regions_with_data=tuple(regions_with_data),
        )


def _detail_number(fields: Dict[str, Any], keys: Sequence[str], regions: Sequence[str]) -> Optional[float]:
    """Busca primero la clave sin prefijo y luego con prefijo de region, en orden."""
    for key in keys:
        if key in fields:
            value = parse_number(fields[key])
            if value is not None:
                return value
        for region in regions:
            prefixed = f"{region}_{key}"
            if prefixed in fields:
                value = parse_number(fields[prefixed])
                if value is not None:
                    return value
    return None


def apply_detail(row: Dict[str, Any], detail: DetailResult) -> Dict[str, Any]:
    """
    Fusiona el detalle en un registro de proyecto ya mapeado.

    Los valores del detalle tienen precedencia sobre las derivaciones del
    resumen (estado, is_active y horas).
    """
    enriched = dict(row)
    fields = detail.all_fields
    regions = detail.regions_with_data or DETAIL_REGIONS

    enriched["detail_raw_data"] = json.dumps(fields, ensure_ascii=False)

    if detail.status:
        enriched["status"] = detail.status
        enriched["is_active"] = is_active_status(detail.status)

    budget = _detail_number(fields, DETAIL_HOURS_BUDGET_KEYS, regions)
    actual = _detail_number(fields, DETAIL_HOURS_ACTUAL_KEYS, regions)
    remaining = _detail_number(fields, DETAIL_HOURS_REMAINING_KEYS, regions)

    if budget is not None:
        enriched["hours_estimate"] = budget
    if actual is not None:
        enriched["hours_actual"] = actual
    if remaining is not None:
        enriched["hours_remaining"] = remaining
    elif budget is not None and actual is not None:
        enriched["hours_remaining"] = max(0.0, budget - actual)

    return enriched
