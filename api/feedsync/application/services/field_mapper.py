"""
Mapeo de entradas de feed a registros canonicos.

El generador de reportes asigna nombres de columna inconsistentes
("Name1", "Company2", "Quoted3", "Textbox232"...). Cada campo logico tiene
una lista ordenada de variantes observadas; gana la primera no vacia.

Para agregar una variante nueva basta con editar las tablas *_FIELD_CANDIDATES.
"""
from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from loguru import logger

from feedsync.infrastructure.external.report_feeds.types import Entry
from feedsync.shared.constants.sync_constants import RecordKind
from feedsync.shared.exceptions.sync import MappingError
from feedsync.shared.utils.text_utils import clean_html_entities, is_blank, parse_number

# Tarifa fija para derivar horas desde montos cuando el reporte no trae horas
COST_PER_HOUR = 125

TERMINAL_STATUS_KEYWORDS = ("completed", "cancelled", "closed")

UNKNOWN_STATUS = "Unknown"

# Un candidato de una sola persona/etapa nunca es tan largo
MAX_SINGLE_VALUE_LENGTH = 100

MAX_EXTERNAL_ID_LENGTH = 100

PROJECT_FIELD_CANDIDATES: Dict[str, Sequence[str]] = {
    "external_id": ("ID", "ProjectID", "Project_ID", "Id"),
    "project_name": ("Name1", "ProjectName", "Project_Name", "Name"),
    "client_name": ("Company2", "CompanyName", "Company", "Client"),
    "project_manager": ("Project_Manager3", "ProjectManager", "PM"),
    "status": (
        "Status", "ProjectStatus", "Project_Status", "status_description",
        "StatusName", "Status_Name", "Textbox37", "Textbox38",
    ),
    "budget": ("Quoted3", "Budget", "QuotedAmount"),
    "spent": ("Actual_Cost", "ActualCost", "Spent"),
    "estimated_cost": ("Estimated_Cost", "EstimatedCost"),
    "actual_cost": ("Actual_Cost", "ActualCost"),
    "hours_estimate": (
        "Estimated_Hours", "Estimated_Hours1", "EstimatedHours",
        "Hours_Budget", "HoursBudget", "Budget_Hours", "BudgetHours",
        "Total_Hours", "TotalHours", "Hours_Estimate", "HoursEstimate",
        "Est_Hours", "EstHours", "Est_Hrs", "EstHrs",
        "Budgeted_Hours", "BudgetedHours", "Project_Hours", "ProjectHours",
        "Scheduled_Hours", "ScheduledHours", "Planned_Hours", "PlannedHours",
    ),
    "hours_actual": (
        "Actual_Hours", "Actual_Hours1", "ActualHours",
        "Hours_Actual", "HoursActual", "Hours_Used", "HoursUsed",
        "Worked_Hours", "WorkedHours", "Used_Hours", "UsedHours",
        "Logged_Hours", "LoggedHours", "Time_Actual", "TimeActual",
    ),
    "hours_remaining": (
        "Hours_Remaining", "HoursRemaining", "Remaining_Hours", "RemainingHours",
        "Hours_Left", "HoursLeft", "Left_Hours", "LeftHours",
    ),
    "wip": ("WIP1", "WIP"),
    "percent_complete": ("Textbox232", "PercentComplete"),
}

OPPORTUNITY_FIELD_CANDIDATES: Dict[str, Sequence[str]] = {
    "external_id": (
        "Opp_RecID", "Opp_RecID1", "OppRecID", "Opportunity_RecID", "OpportunityRecID",
        "ID", "ID1", "OpportunityID", "Opportunity_ID", "Id", "Opp_ID", "OppID",
        "RecID", "RecId", "opp_recid", "opportunity_id",
    ),
    "opportunity_name": (
        "Name", "Name1", "Opp_Name", "OppName", "OpportunityName", "Opportunity_Name",
        "Opportunity", "Description", "Opp_Description", "Summary",
    ),
    "company_name": (
        "Company_Name", "Company_Name1", "Company", "Company1", "CompanyName",
        "Account", "Account_Name", "AccountName", "Client", "ClientName", "Customer",
    ),
    # Sales_Rep suele traer la lista completa de empleados: va al final
    "sales_rep": (
        "Sales_Rep_1", "SalesRep1", "Primary_Sales_Rep", "Primary_Rep", "PrimarySalesRep",
        "PrimaryRep", "Rep", "Rep1", "Owner", "Owner1", "Assigned_To", "AssignedTo",
        "Member", "Member1", "Member_Name", "MemberName", "SalesPerson", "Sales_Person",
        "Salesperson", "Sales_Rep", "SalesRep",
    ),
    "stage": (
        "Sales_Stage", "SalesStage", "Stage", "Opp_Stage", "Status", "Opp_Status",
        "Status_Description",
    ),
    "expected_revenue": (
        "Expected_Revenue", "ExpectedRevenue", "Revenue", "Amount", "Opp_Amount",
        "Total", "Value",
    ),
    "close_date": (
        "Expected_Close_Date", "ExpectedCloseDate", "Expected_Close", "Expected_Close1",
        "ExpectedClose", "CloseDate", "Close_Date", "Close_Date1", "Closed_Date",
        "ClosedDate", "Exp_Close", "ExpClose", "Est_Close", "EstClose", "Target_Close",
        "TargetClose", "Forecast_Close", "ForecastClose", "Due_Date", "DueDate",
    ),
    "probability": (
        "Probability", "Probability1", "Prob", "Prob1", "Win_Probability", "WinProbability",
        "Win_Prob", "WinProb", "Opp_Probability", "OppProbability", "Percent", "Pct",
        "Confidence", "Win_Rate", "WinRate",
    ),
}

SERVICE_TICKET_FIELD_CANDIDATES: Dict[str, Sequence[str]] = {
    "external_id": ("TicketNbr", "Ticket_Number", "SR_RecID", "ID", "TicketID", "Ticket_ID", "Id"),
    "summary": ("Summary", "Description", "Title", "Subject"),
    "status": ("status_description", "Status_Description", "Status", "TicketStatus", "Ticket_Status", "StatusName"),
    "priority": ("Urgency", "Priority_Description", "Priority", "PriorityName", "Priority_Name"),
    "assigned_to": ("team_name", "Assigned_To", "AssignedTo", "Owner", "Resource"),
    "company_name": ("Company_Name", "Company", "CompanyName", "Client"),
    "board_name": ("Board_Name", "Board", "BoardName", "ServiceBoard"),
    "created_date": ("date_entered", "Date_Entered", "Created_Date", "CreatedDate", "DateEntered", "OpenDate"),
    "last_updated": ("last_updated", "Last_Updated", "LastUpdated", "DateUpdated", "ModifiedDate"),
    "due_date": ("DueDate", "Due_Date", "RequiredDate", "Deadline"),
    "hours_estimate": ("BudgetHours", "Budget_Hours", "EstimatedHours", "HoursEstimate"),
    "hours_actual": ("ActualHours", "Actual_Hours", "HoursActual", "WorkedHours"),
    "hours_remaining": ("RemainingHours", "Remaining_Hours", "HoursRemaining"),
    "budget": ("Budget", "BudgetAmount", "Budget_Amount"),
    "notes": ("Notes", "Comments", "InternalNotes"),
}

_NON_ID_CHARS = re.compile(r"[^a-zA-Z0-9_]")
_DIGITS = re.compile(r"^\d+$")


def first_value(entry: Entry, candidates: Iterable[str]) -> Optional[str]:
    """Primer valor no vacio entre las columnas candidatas (en orden)."""
    for name in candidates:
        value = entry.get(name)
        if not is_blank(value):
            return str(value)
    return None


def first_valid(entry: Entry, candidates: Iterable[str], accept: Callable[[str], bool]) -> Optional[str]:
    """
    Primer valor (limpio de entidades) que pasa el filtro accept.
    Los candidatos rechazados no detienen la busqueda.
    """
    for name in candidates:
        value = entry.get(name)
        if is_blank(value):
            continue
        cleaned = clean_html_entities(value)
        if cleaned and accept(cleaned):
            return cleaned
    return None


def is_single_value(value: str) -> bool:
    """Rechaza listas accidentales: sin comas y de largo acotado."""
    return "," not in value and len(value) < MAX_SINGLE_VALUE_LENGTH


def is_active_status(status: Optional[str]) -> bool:
    """
    Un proyecto esta activo salvo que su estado contenga
    completed / cancelled / closed. Sin estado se asume activo.
    """
    lowered = (status or "").lower()
    return not any(keyword in lowered for keyword in TERMINAL_STATUS_KEYWORDS)


def hours_from_cost(amount: Optional[float]) -> Optional[float]:
    if not amount or amount <= 0:
        return None
    return round(amount / COST_PER_HOUR, 2)


def normalize_probability(value: Optional[float]) -> Optional[int]:
    """Normaliza a 0-100: 0.75 -> 75, 75 -> 75."""
    if value is None:
        return None
    percent = round(value) if value > 1 else round(value * 100)
    return max(0, min(100, int(percent)))


def serialize_entry(entry: Entry) -> str:
    return json.dumps(entry, ensure_ascii=False)


def synthesize_external_id(prefix: str, entry: Entry, *parts: Optional[str]) -> str:
    """
    Genera un external_id determinista cuando la entrada no trae identificador.

    Usa las partes descriptivas mas el primer valor puramente numerico de la
    entrada. Es un ultimo recurso: dos entradas distintas con las mismas
    partes colisionan. Si no hay partes, se usa un hash del contenido.
    """
    first_numeric = next((str(v) for v in entry.values() if v and _DIGITS.match(str(v))), "")
    readable = [p for p in parts if p] + ([first_numeric] if first_numeric else [])
    if readable:
        raw = "_".join([prefix] + readable)
    else:
        digest = hashlib.sha1(
            json.dumps(entry, sort_keys=True, ensure_ascii=False).encode("utf-8")
        ).hexdigest()[:16]
        raw = f"{prefix}_{digest}"
    return _NON_ID_CHARS.sub("_", raw)[:MAX_EXTERNAL_ID_LENGTH]


def _or_none(value: Any) -> Any:
    return value if value else None


def _format_number(value: float) -> str:
    # 50.0 -> "50", 45.5 -> "45.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def _clean_or_none(value: Optional[str]) -> Optional[str]:
    return _or_none(clean_html_entities(value))


def _raw_or_none(value: Optional[str]) -> Optional[str]:
    return value.strip() if value and value.strip() else None


def map_project_entry(entry: Entry) -> Dict[str, Any]:
    """
    Mapea una entrada del feed PROJECTS al registro canonico de proyecto.

    Derivaciones:
    - is_active segun palabras clave de estado terminal
    - horas estimadas/reales desde montos (COST_PER_HOUR) si no vienen
    - horas restantes = max(0, estimadas - reales), o desde costos
    """
    c = PROJECT_FIELD_CANDIDATES

    project_name = clean_html_entities(first_value(entry, c["project_name"]))
    client_name = clean_html_entities(first_value(entry, c["client_name"]))
    project_manager = clean_html_entities(first_value(entry, c["project_manager"]))
    status = clean_html_entities(first_value(entry, c["status"]))

    budget = parse_number(first_value(entry, c["budget"]))
    spent = parse_number(first_value(entry, c["spent"]))
    estimated_cost = parse_number(first_value(entry, c["estimated_cost"]))
    actual_cost = parse_number(first_value(entry, c["actual_cost"]))

    hours_estimate = parse_number(first_value(entry, c["hours_estimate"]))
    hours_actual = parse_number(first_value(entry, c["hours_actual"]))
    hours_remaining = parse_number(first_value(entry, c["hours_remaining"]))

    if not hours_estimate:
        hours_estimate = hours_from_cost(budget) or hours_estimate
    if not hours_actual:
        hours_actual = hours_from_cost(actual_cost) or hours_actual

    if not hours_remaining:
        if hours_estimate and hours_actual is not None:
            hours_remaining = max(0.0, hours_estimate - hours_actual)
        elif estimated_cost and actual_cost is not None:
            hours_remaining = round(max(0.0, estimated_cost - actual_cost) / COST_PER_HOUR, 2)

    external_id = first_value(entry, c["external_id"])
    if external_id is None:
        external_id = synthesize_external_id("proj", entry, client_name, project_name)
        logger.warning(f"Proyecto sin identificador; se usa id sintetico '{external_id}'")

    wip = first_value(entry, c["wip"]) or ""
    pct = parse_number(first_value(entry, c["percent_complete"])) or 0
    pct_value = _format_number(round(pct * 100, 1))
    notes = f"PM: {project_manager} | WIP: {wip} | % Complete: {pct_value}%"

    return {
        "external_id": external_id.strip(),
        "client_name": _or_none(client_name),
        "project_name": _or_none(project_name),
        "budget": _or_none(budget),
        "spent": _or_none(spent),
        "hours_estimate": _or_none(hours_estimate),
        "hours_actual": _or_none(hours_actual),
        "hours_remaining": hours_remaining or 0,
        "status": status or UNKNOWN_STATUS,
        "is_active": is_active_status(status),
        "notes": notes,
        "raw_data": serialize_entry(entry),
        "detail_raw_data": None,
    }


def map_opportunity_entry(entry: Entry) -> Dict[str, Any]:
    """Mapea una entrada del feed OPPORTUNITIES."""
    c = OPPORTUNITY_FIELD_CANDIDATES

    opportunity_name = clean_html_entities(first_value(entry, c["opportunity_name"]))
    company_name = clean_html_entities(first_value(entry, c["company_name"]))

    external_id = first_value(entry, c["external_id"])
    if external_id is None:
        external_id = synthesize_external_id("opp", entry, company_name, opportunity_name)
        logger.warning(f"Oportunidad sin identificador; se usa id sintetico '{external_id}'")

    probability = normalize_probability(parse_number(first_value(entry, c["probability"])))

    return {
        "external_id": external_id.strip(),
        "opportunity_name": _or_none(opportunity_name),
        "company_name": _or_none(company_name),
        "sales_rep": first_valid(entry, c["sales_rep"], is_single_value),
        "stage": first_valid(entry, c["stage"], is_single_value),
        "expected_revenue": _or_none(parse_number(first_value(entry, c["expected_revenue"]))),
        "close_date": _raw_or_none(first_value(entry, c["close_date"])),
        "probability": probability,
        "notes": None,
        "raw_data": serialize_entry(entry),
    }


def map_service_ticket_entry(entry: Entry) -> Dict[str, Any]:
    """Mapea una entrada del feed SERVICE_TICKETS."""
    c = SERVICE_TICKET_FIELD_CANDIDATES

    summary = clean_html_entities(first_value(entry, c["summary"]))
    company_name = clean_html_entities(first_value(entry, c["company_name"]))

    external_id = first_value(entry, c["external_id"])
    if external_id is None:
        external_id = synthesize_external_id("tkt", entry, company_name, summary)
        logger.warning(f"Ticket sin identificador; se usa id sintetico '{external_id}'")

    return {
        "external_id": external_id.strip(),
        "summary": _or_none(summary),
        "status": _raw_or_none(first_value(entry, c["status"])),
        "priority": _raw_or_none(first_value(entry, c["priority"])),
        "assigned_to": _clean_or_none(first_value(entry, c["assigned_to"])),
        "company_name": _or_none(company_name),
        "board_name": _raw_or_none(first_value(entry, c["board_name"])),
        "created_date": _raw_or_none(first_value(entry, c["created_date"])),
        "last_updated": _raw_or_none(first_value(entry, c["last_updated"])),
        "due_date": _raw_or_none(first_value(entry, c["due_date"])),
        "hours_estimate": _or_none(parse_number(first_value(entry, c["hours_estimate"]))),
        "hours_actual": _or_none(parse_number(first_value(entry, c["hours_actual"]))),
        "hours_remaining": _or_none(parse_number(first_value(entry, c["hours_remaining"]))),
        "budget": _or_none(parse_number(first_value(entry, c["budget"]))),
        "notes": _clean_or_none(first_value(entry, c["notes"])),
        "raw_data": serialize_entry(entry),
    }


MAPPERS: Dict[RecordKind, Callable[[Entry], Dict[str, Any]]] = {
    RecordKind.PROJECTS: map_project_entry,
    RecordKind.OPPORTUNITIES: map_opportunity_entry,
    RecordKind.SERVICE_TICKETS: map_service_ticket_entry,
}


def map_entry(kind: RecordKind, entry: Entry) -> Dict[str, Any]:
    """
    Mapea una entrada segun el tipo de registro.

    Raises:
        MappingError: Si la entrada no es un mapa o el mapeo falla
    """
    if not isinstance(entry, dict):
        raise MappingError(f"Entry must be a mapping, got {type(entry).__name__}", kind=getattr(kind, "value", kind))
    mapper = MAPPERS[RecordKind(kind)]
    try:
        return mapper(entry)
    except MappingError:
        raise
    except (TypeError, ValueError, AttributeError) as e:
        raise MappingError(f"Could not map entry: {e}", kind=getattr(kind, "value", kind)) from e
