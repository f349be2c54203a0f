"""
Reescritura de URLs plantilla del report server.

El query string de estas URLs no es estandar: antes del primer token con '='
va la ruta del reporte ("?%2FFolder%2FReport&rs:Command=Render&..."), y los
parametros multi-valor se repiten una vez por valor. Por eso se parsea a mano
y se preserva el orden y la codificacion original de cada token.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from feedsync.infrastructure.external.report_feeds.types import CleanResult
from feedsync.shared.constants.sync_constants import FeedKind
from feedsync.shared.utils.datetime_utils import DateTimeUtils

# Parametros de control de render: nunca se tocan
ALWAYS_KEEP_PREFIXES = ("rs:", "rc:", "rv:")

# Identificadores de proyecto (plantillas de detalle)
PROJECT_ID_PARAM_NAMES = frozenset({
    "projectid",
    "project_id",
    "project",
    "projectrecid",
    "project_recid",
    "pm_projectid",
})

# Identificadores de registros puntuales que quedaron fijados al exportar el feed
RECORD_ID_PARAM_NAMES = PROJECT_ID_PARAM_NAMES | frozenset({
    "recid",
    "recordid",
    "record_id",
    "ticketnbr",
    "ticketid",
    "ticket_id",
    "sr_recid",
    "srrecid",
    "opportunityid",
    "opportunity_id",
    "opp_recid",
})

# Un parametro repetido mas veces que esto es un "seleccionar todo"
MULTI_VALUE_THRESHOLD = 20

END_DATE_PARAM_NAMES = frozenset({
    "enddate",
    "end_date",
    "todate",
    "to_date",
    "dateto",
    "date_to",
    "dateend",
})

START_DATE_PARAM_NAMES = frozenset({
    "startdate",
    "start_date",
    "fromdate",
    "from_date",
    "datefrom",
    "date_from",
    "datestart",
})

LOCATION_PARAM_NAMES = frozenset({
    "location",
    "locations",
    "locationid",
    "location_id",
})
DEFAULT_LOCATION_PARAM = "Location"

REGION_PARAM_NAME = "rc:itempath"
DEFAULT_REGION_PARAM = "rc:ItemPath"
DEFAULT_PROJECT_ID_PARAM = "ProjectID"


@dataclass(frozen=True)
class _Token:
    """
    Token del query string tal como viene en la URL.

    value es None para segmentos sin '=' (ruta del reporte).
    """

    raw_key: str
    value: Optional[str] = None

    @property
    def is_param(self) -> bool:
        return self.value is not None

    @property
    def name(self) -> str:
        return unquote(self.raw_key).strip()

    @property
    def key(self) -> str:
        return self.name.lower()

    def render(self) -> str:
        if self.value is None:
            return self.raw_key
        return f"{self.raw_key}={self.value}"


def _split(url: str) -> Tuple[str, List[_Token]]:
    base, sep, query = url.partition("?")
    if not sep:
        return url, []
    tokens: List[_Token] = []
    for part in query.split("&"):
        if not part:
            continue
        raw_key, eq, value = part.partition("=")
        tokens.append(_Token(raw_key, value if eq else None))
    return base, tokens


def _join(base: str, tokens: Sequence[_Token]) -> str:
    if not tokens:
        return base
    return f"{base}?{'&'.join(t.render() for t in tokens)}"


def _encode(value: str) -> str:
    return quote(str(value), safe="")


def _is_render_control(key: str) -> bool:
    return key.startswith(ALWAYS_KEEP_PREFIXES)


def clean_template(url: str, preserve_multi_value: bool = False) -> CleanResult:
    """
    Limpia una URL plantilla exportada desde el report server.

    - rs:/rc:/rv: se conservan siempre
    - identificadores de registro puntuales se eliminan
    - parametros repetidos mas de MULTI_VALUE_THRESHOLD veces se eliminan
      (salvo preserve_multi_value) para que el reporte use su valor por defecto

    Es idempotente: limpiar dos veces no elimina nada mas.
    """
    base, tokens = _split(url)
    counts = Counter(t.key for t in tokens if t.is_param)

    kept_tokens: List[_Token] = []
    removed: set[str] = set()
    kept: set[str] = set()

    for token in tokens:
        if not token.is_param:
            kept_tokens.append(token)
            continue
        key = token.key
        if _is_render_control(key):
            keep = True
        elif key in RECORD_ID_PARAM_NAMES:
            keep = False
        elif counts[key] > MULTI_VALUE_THRESHOLD and not preserve_multi_value:
            keep = False
        else:
            keep = True

        if keep:
            kept_tokens.append(token)
            kept.add(token.name)
        else:
            removed.add(token.name)

    return CleanResult(url=_join(base, kept_tokens), removed=frozenset(removed), kept=frozenset(kept))


def apply_dynamic_dates(url: str, lookback_days: int, today: Optional[date] = None) -> str:
    """
    Reemplaza los parametros de fecha de inicio/fin por la ventana
    [hoy - lookback_days, hoy] en formato dd/mm/aaaa.
    """
    start, end = DateTimeUtils.lookback_range(lookback_days, today)
    start_value = _encode(DateTimeUtils.format_report_date(start))
    end_value = _encode(DateTimeUtils.format_report_date(end))

    base, tokens = _split(url)
    rewritten: List[_Token] = []
    for token in tokens:
        if token.is_param and token.key in END_DATE_PARAM_NAMES:
            token = _Token(token.raw_key, end_value)
        elif token.is_param and token.key in START_DATE_PARAM_NAMES:
            token = _Token(token.raw_key, start_value)
        rewritten.append(token)
    return _join(base, rewritten)


def inject_location_filter(url: str, locations: Iterable[str]) -> str:
    """
    Agrega o reemplaza el filtro de ubicacion (un parametro por valor).
    Sin ubicaciones, la URL no cambia.
    """
    values = [str(v).strip() for v in locations if str(v).strip()]
    if not values:
        return url

    base, tokens = _split(url)
    raw_key = DEFAULT_LOCATION_PARAM
    insert_at: Optional[int] = None
    remaining: List[_Token] = []
    for token in tokens:
        if token.is_param and token.key in LOCATION_PARAM_NAMES:
            if insert_at is None:
                insert_at = len(remaining)
                raw_key = token.raw_key
            continue
        remaining.append(token)

    new_tokens = [_Token(raw_key, _encode(v)) for v in values]
    if insert_at is None:
        remaining.extend(new_tokens)
    else:
        remaining[insert_at:insert_at] = new_tokens
    return _join(base, remaining)


def create_detail_url(template_url: str, entity_id: str, region: Optional[str] = None) -> str:
    """
    Construye la URL de detalle de un proyecto.

    Sustituye todos los parametros identificadores de proyecto por entity_id.
    Sin region se elimina el selector rc:ItemPath (el reporte devuelve su
    vista por defecto); con region se reemplaza o se agrega.
    """
    base, tokens = _split(template_url)
    id_value = _encode(entity_id)

    rewritten: List[_Token] = []
    substituted = False
    region_written = False
    for token in tokens:
        if token.is_param and token.key in PROJECT_ID_PARAM_NAMES:
            rewritten.append(_Token(token.raw_key, id_value))
            substituted = True
        elif token.is_param and token.key == REGION_PARAM_NAME:
            if region is not None and not region_written:
                rewritten.append(_Token(token.raw_key, _encode(region)))
                region_written = True
        else:
            rewritten.append(token)

    if not substituted:
        rewritten.append(_Token(DEFAULT_PROJECT_ID_PARAM, id_value))
    if region is not None and not region_written:
        rewritten.append(_Token(DEFAULT_REGION_PARAM, _encode(region)))
    return _join(base, rewritten)


def detect_kind(url: str, title: Optional[str] = None) -> FeedKind:
    """
    Clasifica una definicion de feed.

    1. Exactamente un parametro identificador de proyecto y ninguno repetido:
       plantilla de detalle.
    2. Palabras clave en la URL decodificada y el titulo.
    3. Por defecto, resumen de proyectos.
    """
    _, tokens = _split(url)
    id_counts = Counter(t.key for t in tokens if t.is_param and t.key in PROJECT_ID_PARAM_NAMES)
    has_list_ids = any(count > 1 for count in id_counts.values())

    if sum(id_counts.values()) == 1 and not has_list_ids:
        return FeedKind.PROJECT_DETAIL

    text = f"{unquote(url)} {title or ''}".lower()
    if "ticket" in text or "service" in text:
        return FeedKind.SERVICE_TICKETS
    if "opportunit" in text or "sales" in text or "pipeline" in text:
        return FeedKind.OPPORTUNITIES
    if "detail" in text and not has_list_ids:
        return FeedKind.PROJECT_DETAIL
    return FeedKind.PROJECTS
