"""
Constantes del motor de sincronizacion de feeds.
"""
from enum import Enum


class FeedKind(str, Enum):
    """Tipos de feed configurables."""
    PROJECTS = "PROJECTS"
    OPPORTUNITIES = "OPPORTUNITIES"
    SERVICE_TICKETS = "SERVICE_TICKETS"
    PROJECT_DETAIL = "PROJECT_DETAIL"


class RecordKind(str, Enum):
    """Tipos de registro canonico que se sincronizan."""
    PROJECTS = "PROJECTS"
    OPPORTUNITIES = "OPPORTUNITIES"
    SERVICE_TICKETS = "SERVICE_TICKETS"


class EntityType(str, Enum):
    """Tipo de entidad registrado en el historial de cambios."""
    PROJECT = "PROJECT"
    OPPORTUNITY = "OPPORTUNITY"
    SERVICE_TICKET = "SERVICE_TICKET"


class SyncStatus(str, Enum):
    """Estados del ciclo de vida de una corrida de sync."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ChangeType(str, Enum):
    """Tipos de cambio del historial de auditoria."""
    CREATED = "CREATED"
    UPDATED = "UPDATED"


class TriggerSource(str, Enum):
    """Origen de una solicitud de sync."""
    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"


class SyncEventType(str, Enum):
    """Eventos emitidos por el orquestador."""
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Solicitud que se expande a una corrida por tipo concreto
SYNC_ALL = "ALL"

IN_FLIGHT_STATUSES = (SyncStatus.PENDING, SyncStatus.RUNNING)

ENTITY_TYPE_BY_KIND = {
    RecordKind.PROJECTS: EntityType.PROJECT,
    RecordKind.OPPORTUNITIES: EntityType.OPPORTUNITY,
    RecordKind.SERVICE_TICKETS: EntityType.SERVICE_TICKET,
}

# Mensajes fijos del ciclo de vida
CANCELLED_BY_USER_MESSAGE = "Cancelled by user"
INTERRUPTED_BY_RESTART_MESSAGE = "Sync interrupted by app restart"

# Claves de system_settings consumidas por el sync
SETTING_LOOKBACK_DAYS = "sync.lookback_days"
SETTING_ADAPTIVE_ENABLED = "sync.adaptive_enabled"
SETTING_LOCATIONS = "sync.locations"
SETTING_PRESERVE_MULTI_VALUE = "sync.preserve_multi_value"

# Largo maximo del mensaje de error persistido en la corrida
MAX_ERROR_MESSAGE_LENGTH = 2000
