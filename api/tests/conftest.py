"""
Configuración de fixtures para pytest.
"""
import threading
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedsync.infrastructure.database.session import build_engine, build_session_factory, create_schema


def atom_feed(rows: List[Dict[str, str]]) -> bytes:
    """Arma un feed ATOM con propiedades OData, como lo exporta el report server."""
    entries = []
    for row in rows:
        props = "".join(f"<d:{k}>{v}</d:{k}>" for k, v in row.items())
        entries.append(
            "<entry><id>x</id><content type=\"application/xml\">"
            f"<m:properties>{props}</m:properties>"
            "</content></entry>"
        )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom" '
        'xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices" '
        'xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">'
        "<title>Report</title>"
        + "".join(entries)
        + "</feed>"
    ).encode("utf-8")


class FakeFeedClient:
    """
    Cliente de feeds en memoria.

    responses: fragmento de URL -> bytes o excepcion a lanzar. Gana el primer
    fragmento contenido en la URL (en orden de insercion).
    gate: si se define, fetch bloquea hasta que el evento se active.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Union[bytes, Exception]]] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.responses: Dict[str, Union[bytes, Exception]] = dict(responses or {})
        self.gate = gate
        self.calls: List[str] = []
        self.closed = False

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if self.gate is not None:
            self.gate.wait(timeout=10)
        for fragment, response in self.responses.items():
            if fragment in url:
                if isinstance(response, Exception):
                    raise response
                return response
        return atom_feed([])

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def feed_xml():
    """Constructor de feeds ATOM de prueba."""
    return atom_feed


@pytest.fixture
def client_factory():
    """Constructor de FakeFeedClient (respuestas y gate por test)."""
    return FakeFeedClient


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory sobre una base SQLite en archivo (una por test).
    En archivo y no en memoria para que varias sesiones vean los mismos datos.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'feedsync.db'}", echo=False)
    await create_schema(engine)

    factory = build_session_factory(engine)
    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sesión de base de datos para tests de repositorios."""
    async with session_factory() as session:
        yield session
