"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from feedsync.infrastructure.database.models import (
    FeedModel,
    ProjectModel,
    OpportunityModel,
    ServiceTicketModel,
    SyncRunModel,
    SyncChangeModel,
    SystemSettingsModel,
)
