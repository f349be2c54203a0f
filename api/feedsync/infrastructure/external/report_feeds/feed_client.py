"""
Cliente HTTP de los feeds del report server.

Requisitos cubiertos:
- requests
- autenticacion integrada de Windows (Negotiate/SSPI) o NTLM explicito
- una sola peticion por llamada: los reintentos son decision del caller
- nunca se registran datos de negocio (ni query ni cuerpo)
"""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import urlsplit

import requests
from loguru import logger

from feedsync.core.config import settings
from feedsync.shared.exceptions.sync import (
    AuthenticationFailed,
    ConfigurationError,
    TransportError,
    UpstreamError,
)

# Marcadores de error conocidos en las paginas HTML del report server
_ERROR_PATTERNS = (
    re.compile(r'<div[^>]*class="[^"]*rsDetailedMessageDiv[^"]*"[^>]*>([\s\S]*?)</div>', re.IGNORECASE),
    re.compile(r'<span[^>]*class="[^"]*rsErrorMessage[^"]*"[^>]*>([\s\S]*?)</span>', re.IGNORECASE),
    re.compile(r"<b>Exception Details:</b>([\s\S]*?)<br\s*/?>", re.IGNORECASE),
    re.compile(r"<p>((?:rsProcessingAborted|rsErrorExecutingCommand|rsReportNotReady)[\s\S]*?)</p>", re.IGNORECASE),
)
_TAG_RE = re.compile(r"<[^>]*>")

MAX_ERROR_BODY_CHARS = 500

AUTH_MODE_NEGOTIATE = "negotiate"
AUTH_MODE_NTLM = "ntlm"
AUTH_MODE_NONE = "none"


def extract_error_message(body: str) -> str:
    """
    Extrae un mensaje legible de una pagina de error del report server.
    Si no hay marcador conocido, retorna los primeros 500 caracteres del cuerpo.
    """
    for pattern in _ERROR_PATTERNS:
        match = pattern.search(body)
        if match:
            message = _TAG_RE.sub("", match.group(1)).strip()
            if message:
                return message
    return body[:MAX_ERROR_BODY_CHARS]


def build_auth(mode: str, username: str = "", password: str = "") -> Optional[Any]:
    """
    Construye el handler de autenticacion de requests segun el modo configurado.

    negotiate: usa las credenciales del proceso (SSPI), solo disponible en Windows.
    ntlm: usa FEED_USERNAME / FEED_PASSWORD (DOMINIO\\usuario).
    """
    mode = (mode or AUTH_MODE_NONE).strip().lower()
    if mode == AUTH_MODE_NONE:
        return None
    if mode == AUTH_MODE_NTLM:
        if not username:
            raise ConfigurationError("FEED_USERNAME es obligatorio con FEED_AUTH_MODE=ntlm")
        from requests_ntlm import HttpNtlmAuth

        return HttpNtlmAuth(username, password)
    if mode == AUTH_MODE_NEGOTIATE:
        try:
            from requests_negotiate_sspi import HttpNegotiateAuth
        except ImportError as e:
            raise ConfigurationError(
                "FEED_AUTH_MODE=negotiate requiere Windows (requests-negotiate-sspi). "
                "Usa FEED_AUTH_MODE=ntlm con credenciales explicitas en otras plataformas."
            ) from e
        return HttpNegotiateAuth()
    raise ConfigurationError(f"FEED_AUTH_MODE no soportado: {mode}")


class FeedClient:
    """
    Cliente de feeds. fetch(url) retorna los bytes crudos de la respuesta.

    Errores:
    - TransportError: DNS, timeout, conexion, TLS
    - AuthenticationFailed: 401
    - UpstreamError: cualquier otro status no exitoso
    """

    def __init__(
        self,
        *,
        auth: Optional[Any] = None,
        session: Optional[requests.Session] = None,
        timeout_s: int = 120,
        verify_tls: bool = True,
    ) -> None:
        self._session = session or requests.Session()
        if auth is not None:
            self._session.auth = auth
        self._timeout_s = timeout_s
        self._verify_tls = verify_tls

    def fetch(self, url: str) -> bytes:
        host = urlsplit(url).hostname or "?"
        logger.debug(f"GET feed host={host} (largo URL: {len(url)})")

        try:
            resp = self._session.get(url, timeout=self._timeout_s, verify=self._verify_tls)
        except requests.RequestException as e:
            logger.warning(f"Fallo de transporte contra {host}: {type(e).__name__}")
            raise TransportError(f"Request to {host} failed: {e}") from e

        logger.debug(f"Respuesta {resp.status_code} de {host} ({len(resp.content)} bytes)")

        if resp.status_code == 401:
            raise AuthenticationFailed()

        if not 200 <= resp.status_code < 300:
            message = extract_error_message(resp.text or "")
            logger.warning(f"Report server respondio {resp.status_code} ({len(resp.content)} bytes)")
            raise UpstreamError(resp.status_code, message)

        return resp.content

    def close(self) -> None:
        self._session.close()


def build_feed_client_from_settings() -> FeedClient:
    """Crea el cliente con la configuracion de entorno."""
    auth = build_auth(settings.FEED_AUTH_MODE, settings.FEED_USERNAME, settings.FEED_PASSWORD)
    return FeedClient(
        auth=auth,
        timeout_s=settings.FEED_TIMEOUT_SECONDS,
        verify_tls=settings.FEED_VERIFY_TLS,
    )
