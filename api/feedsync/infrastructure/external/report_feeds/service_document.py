"""
Lectura de documentos de servicio (.atomsvc) exportados por el report server.

<service>
  <workspace>
    <collection href="http://server/ReportServer?%2FFolder%2FReport&amp;rs:Command=Render&amp;rs:Format=ATOM">
      <title>Report Title</title>
    </collection>
  </workspace>
</service>
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union

from lxml import etree

from feedsync.infrastructure.external.report_feeds.url_templater import detect_kind
from feedsync.shared.constants.sync_constants import FeedKind
from feedsync.shared.exceptions.sync import ParseError
from feedsync.shared.utils.text_utils import clean_html_entities

DEFAULT_FEED_NAME = "Unnamed Feed"


@dataclass(frozen=True)
class FeedDefinition:
    name: str
    feed_url: str
    kind: FeedKind


def _local(element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element.tag).localname.lower()


def parse_service_document(data: Union[bytes, str]) -> List[FeedDefinition]:
    """
    Retorna una definicion por cada <collection href=...> del documento.

    Raises:
        ParseError: Si el documento no es XML valido
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data.lstrip(b"\xef\xbb\xbf").strip(), parser=parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed service document: {e}") from e

    definitions: List[FeedDefinition] = []
    for collection in root.iter():
        if _local(collection) != "collection":
            continue
        href = collection.get("href")
        if not href:
            continue
        # lxml ya decodifica &amp;; se limpian entidades doblemente escapadas
        feed_url = clean_html_entities(href)
        title = next(
            ("".join(child.itertext()).strip() for child in collection if _local(child) == "title"),
            "",
        )
        name = title or DEFAULT_FEED_NAME
        definitions.append(FeedDefinition(name=name, feed_url=feed_url, kind=detect_kind(feed_url, name)))
    return definitions
