"""
Utilidades de texto para valores crudos de los reportes.
"""
import re
from typing import Any, Optional


_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_CURRENCY_RE = re.compile(r"[$,€£]")


def clean_html_entities(value: Optional[str]) -> str:
    """
    Decodifica las entidades HTML que el generador de reportes deja en los textos.

    Retorna siempre un string recortado ("" si el valor es None).
    """
    if value is None:
        return ""
    text = str(value)
    for entity, replacement in _HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return text.strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Parsea un numero desde un string del reporte.

    Quita simbolos de moneda y separadores de miles. Acepta prefijos
    numericos ("12.5 hrs" -> 12.5) igual que el parseo laxo del report server.
    Retorna None si no hay numero.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _CURRENCY_RE.sub("", str(value)).strip()
    match = re.match(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", cleaned)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def is_blank(value: Any) -> bool:
    """True si el valor es None o un string vacio / solo espacios."""
    return value is None or (isinstance(value, str) and not value.strip())
