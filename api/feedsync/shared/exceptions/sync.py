"""
Excepciones del pipeline de ingesta.

Taxonomia:
- SyncError y subclases: fatales para la corrida que las contiene.
- MappingError: falla de una sola entrada; se registra y se continua.
"""
from typing import Optional

from feedsync.shared.exceptions.base import AppException


class SyncError(AppException):
    """Error fatal para una corrida de sync."""

    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details=None):
        super().__init__(message=message, error_code=error_code, details=details)


class ConfigurationError(SyncError):
    """No hay feed activo (u otra configuracion obligatoria) para un tipo."""

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"kind": kind} if kind else None,
        )


class FeedFetchError(SyncError):
    """Error base de la capa de transporte de feeds."""


class TransportError(FeedFetchError):
    """Fallo de red: DNS, timeout, conexion rechazada, TLS."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="TRANSPORT_ERROR")


class AuthenticationFailed(FeedFetchError):
    """El report server rechazo las credenciales (401)."""

    def __init__(self, message: str = "Report server rejected the credentials"):
        super().__init__(message=message, error_code="AUTHENTICATION_FAILED", details={"status": 401})


class UpstreamError(FeedFetchError):
    """El report server respondio con un status no exitoso."""

    def __init__(self, status: int, message: str):
        super().__init__(
            message=f"HTTP {status}: {message}",
            error_code="UPSTREAM_ERROR",
            details={"status": status},
        )
        self.status = status
        self.upstream_message = message


class ParseError(SyncError):
    """El documento recibido no es XML valido."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="PARSE_ERROR")


class MappingError(AppException):
    """Una entrada individual no pudo mapearse a un registro canonico."""

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="MAPPING_ERROR",
            details={"kind": kind} if kind else None,
        )
