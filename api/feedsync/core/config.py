"""
Configuracion central del motor de sincronizacion.
Gestiona variables de entorno y valores por defecto del sync.
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Variables de entorno del motor (y del .env si existe).

    Grupos de configuracion:
    - Base de datos: URL completa o por componentes
    - Transporte de feeds: modo de autenticacion contra el report server
    - Sync: valores por defecto (se pueden sobreescribir en system_settings)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Feed Sync Engine")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Base de datos - Componentes separados
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="feedsync_user")
    DATABASE_PASSWORD: str = Field(default="feedsync_pass")
    DATABASE_NAME: str = Field(default="feedsync_db")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/feedsync.log")

    # Transporte de feeds
    # negotiate: credenciales Windows del proceso (SSPI), solo en Windows
    # ntlm: credenciales explicitas FEED_USERNAME / FEED_PASSWORD
    # none: sin autenticacion (report servers anonimos o tests)
    FEED_AUTH_MODE: str = Field(default="negotiate")
    FEED_USERNAME: str = Field(default="")
    FEED_PASSWORD: str = Field(default="")
    FEED_TIMEOUT_SECONDS: int = Field(default=120)
    FEED_VERIFY_TLS: bool = Field(default=True)

    # Sync - valores por defecto
    SYNC_LOOKBACK_DAYS: int = Field(default=90)
    SYNC_ADAPTIVE_ENABLED: bool = Field(default=True)
    SYNC_LOCATIONS: str = Field(default="")
    SYNC_PRESERVE_MULTI_VALUE: bool = Field(default=False)

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def parse_list_setting(raw: str) -> List[str]:
    """
    Parsea una configuracion de tipo lista.
    Acepta una lista JSON o valores separados por coma.
    """
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(parsed, list):
        return [str(item).strip() for item in parsed if str(item).strip()]
    return [str(parsed).strip()]


# Instancia global de configuracion
settings = Settings()
