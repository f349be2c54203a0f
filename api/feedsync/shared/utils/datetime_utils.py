"""
Utilidades para manejo de fechas y horas.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional


# Formato dia-mes-anio que esperan los parametros de fecha del report server
REPORT_DATE_FORMAT = "%d/%m/%Y"


class DateTimeUtils:
    """Clase de utilidades para operaciones con fechas y horas."""

    @staticmethod
    def now_utc() -> datetime:
        """
        Obtiene la fecha y hora actual en UTC.

        Returns:
            datetime: Fecha y hora actual en UTC
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def today() -> date:
        """Fecha local de hoy (la que entiende el report server)."""
        return date.today()

    @staticmethod
    def format_report_date(value: date) -> str:
        """Formatea una fecha en el formato dia-mes-anio del report server."""
        return value.strftime(REPORT_DATE_FORMAT)

    @staticmethod
    def lookback_range(lookback_days: int, today: Optional[date] = None) -> tuple[date, date]:
        """
        Retorna (inicio, fin) para una ventana que termina hoy.

        Args:
            lookback_days: Dias hacia atras desde hoy
            today: Fecha de referencia (por defecto hoy)
        """
        end = today or DateTimeUtils.today()
        return end - timedelta(days=max(0, lookback_days)), end
