"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import (
    SyncRunDTO,
    SyncCountsDTO,
    SyncEventDTO,
    FieldChangeDTO,
    EntityChangeSummaryDTO,
    KindStatusDTO,
    SyncStatusDTO,
    ClearHistoryResultDTO,
    FeedTestResultDTO,
)

__all__ = [
    "SyncRunDTO",
    "SyncCountsDTO",
    "SyncEventDTO",
    "FieldChangeDTO",
    "EntityChangeSummaryDTO",
    "KindStatusDTO",
    "SyncStatusDTO",
    "ClearHistoryResultDTO",
    "FeedTestResultDTO",
]
