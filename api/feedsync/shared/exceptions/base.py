"""
Raiz de la jerarquia de errores del motor de sync.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Error conocido del motor.

    Lleva un codigo estable (lo que ven los CLIs y el historial de corridas)
    y un diccionario de detalles serializable a JSON.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Forma JSON del error para la salida de los CLIs."""
        payload: Dict[str, Any] = {"error_code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload
