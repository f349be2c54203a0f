"""
Parser del XML de entradas (ATOM + propiedades OData) del report server.

Cada <entry> trae sus columnas en content/m:properties/d:<Columna>. Se
descartan los prefijos de namespace y cada entrada queda como un mapa
plano columna -> texto.
"""

from __future__ import annotations

from typing import List, Union

from loguru import logger
from lxml import etree

from feedsync.infrastructure.external.report_feeds.types import Entry
from feedsync.shared.exceptions.sync import ParseError

_UTF8_BOM = b"\xef\xbb\xbf"


def _local(element) -> str:
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def _children(element, name: str) -> list:
    return [child for child in element if _local(child) == name]


def _text_value(element) -> str:
    if len(element) == 0:
        return element.text or ""
    return "".join(element.itertext())


def _strip_bom(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        data = data.lstrip("\ufeff\ufffe").encode("utf-8")
    # Los BOM UTF-16 los resuelve lxml al detectar la codificacion
    data = data.lstrip()
    if data.startswith(_UTF8_BOM):
        data = data[len(_UTF8_BOM):]
    return data.lstrip()


def _entry_properties(entry) -> list:
    for content in _children(entry, "content"):
        props = _children(content, "properties")
        if props:
            return props
    return _children(entry, "properties")


def parse_entries(data: Union[bytes, str]) -> List[Entry]:
    """
    Parsea un documento de feed a una lista de entradas.

    Un feed sin entradas retorna [] (no es error).

    Raises:
        ParseError: Si el documento no es XML valido
    """
    payload = _strip_bom(data)
    if not payload:
        raise ParseError("Empty feed document")

    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False, huge_tree=True)
    try:
        root = etree.fromstring(payload, parser=parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed feed XML: {e}") from e

    if _local(root) == "entry":
        raw_entries = [root]
    else:
        raw_entries = [el for el in root.iter() if _local(el) == "entry"]

    entries: List[Entry] = []
    for raw in raw_entries:
        properties = _entry_properties(raw)
        if not properties:
            continue
        record: Entry = {}
        for prop in properties[0]:
            name = _local(prop)
            if name:
                record[name] = _text_value(prop)
        entries.append(record)

    logger.debug(f"Feed parseado: {len(entries)} entradas")
    return entries
