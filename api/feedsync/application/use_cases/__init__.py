"""
Casos de uso de la aplicacion.
"""
from feedsync.application.use_cases.feed_sync_use_cases import FeedSyncUseCases
from feedsync.application.use_cases.sync_orchestrator import SyncOrchestrator, expand_kinds

__all__ = [
    "FeedSyncUseCases",
    "SyncOrchestrator",
    "expand_kinds",
]
