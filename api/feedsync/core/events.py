"""
Manejadores de inicio y cierre del job de sincronizacion.
"""
from typing import Any, Callable

from loguru import logger

from feedsync.core.config import settings
from feedsync.infrastructure.database.session import init_db, close_db


def startup_handler(orchestrator: Any) -> Callable:
    """
    Manejador de inicio.

    Args:
        orchestrator: SyncOrchestrator del proceso

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos y recupera corridas interrumpidas."""
        try:
            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            _validate_config()

            # Inicializar base de datos (crea tablas si no existen)
            await init_db()
            logger.info("Base de datos inicializada")

            recovered = await orchestrator.start()
            logger.info(f"Recuperacion de arranque completada ({recovered} corridas)")

            logger.success("Motor de sync iniciado correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    mode = settings.FEED_AUTH_MODE.strip().lower()
    if mode == "ntlm" and not settings.FEED_USERNAME:
        warnings.append("FEED_AUTH_MODE=ntlm sin FEED_USERNAME - los fetch fallaran")
    if not settings.FEED_VERIFY_TLS:
        warnings.append("FEED_VERIFY_TLS deshabilitado")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(orchestrator: Any, client: Any = None) -> Callable:
    """
    Manejador de cierre.

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al terminar el job."""
        logger.info("Cerrando motor de sync...")

        await orchestrator.shutdown()

        if client is not None and hasattr(client, "close"):
            client.close()
            logger.info("Cliente de feeds cerrado")

        # Cerrar conexiones de base de datos
        await close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Motor de sync cerrado correctamente")

    return shutdown
