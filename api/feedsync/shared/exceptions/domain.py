"""
Excepciones relacionadas con la lógica de dominio del sync.
"""
from typing import Any

from feedsync.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )


class ConcurrencyConflict(DomainException):
    """Excepción cuando ya existe una corrida PENDING/RUNNING para el mismo tipo."""

    def __init__(self, kind: str, existing_run_id: Any = None):
        suffix = f" (ID: {existing_run_id})" if existing_run_id is not None else ""
        super().__init__(
            message=f"A {kind} sync is already pending or running{suffix}",
            error_code="SYNC_ALREADY_RUNNING",
            details={"kind": kind, "existing_run_id": existing_run_id}
        )
        self.kind = kind
        self.existing_run_id = existing_run_id


class SyncRunNotFound(DomainException):
    """Excepcion cuando no se encuentra una corrida de sync."""

    def __init__(self, run_id: int):
        super().__init__(
            message=f"Sync run {run_id} not found",
            error_code="SYNC_RUN_NOT_FOUND",
            details={"run_id": run_id}
        )
        self.run_id = run_id


class InvalidRunTransition(DomainException):
    """Excepcion cuando se intenta una transicion no valida (p.ej. cancelar una corrida terminada)."""

    def __init__(self, run_id: int, status: str):
        super().__init__(
            message=f"Cannot cancel sync with status {status}",
            error_code="INVALID_RUN_TRANSITION",
            details={"run_id": run_id, "status": status}
        )
        self.run_id = run_id
        self.status = status


class HistoryInUseError(DomainException):
    """Excepcion cuando se intenta limpiar el historial con corridas en vuelo."""

    def __init__(self, in_flight: int):
        super().__init__(
            message=f"Cannot clear history while {in_flight} sync(s) are pending or running",
            error_code="HISTORY_IN_USE",
            details={"in_flight": in_flight}
        )


class FeedLinkError(DomainException):
    """Excepcion cuando un enlace summary -> detail no es valido."""

    def __init__(self, message: str, summary_feed_id: Any = None, detail_feed_id: Any = None):
        super().__init__(
            message=message,
            error_code="INVALID_FEED_LINK",
            details={"summary_feed_id": summary_feed_id, "detail_feed_id": detail_feed_id}
        )


class FeedNotFound(DomainException):
    """Excepcion cuando no existe el feed pedido."""

    def __init__(self, feed_id: int):
        super().__init__(
            message=f"Feed {feed_id} not found",
            error_code="FEED_NOT_FOUND",
            details={"feed_id": feed_id}
        )
        self.feed_id = feed_id
