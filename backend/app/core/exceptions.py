# backend/app/core/exceptions.py
"""
Excepciones de dominio para la gestión del árbol de categorías.

Cada operación del servicio termina con un resultado válido o lanzando
exactamente una de estas excepciones. La capa HTTP (ver app/main.py) se
encarga de traducirlas al código de estado y al sobre de respuesta
`{status, message, error}`.

Jerarquía:
- AppError: base común con código HTTP y estado ("fail" / "error")
- ValidationError: restricciones de campos incumplidas (400)
- InvalidRequestError: petición mal formada o contradictoria (400)
- NotFoundError: entidad inexistente o resultado vacío (404)
- ConflictError: operación bloqueada por el estado actual (400)
- InternalError: fallo del almacenamiento o error inesperado (500)
"""

from typing import Any, Dict, Optional

from starlette import status


class AppError(Exception):
    """Error operacional con código HTTP asociado."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        # 4xx -> "fail", 5xx -> "error"
        return "fail" if str(self.status_code).startswith("4") else "error"

    def to_dict(self) -> Dict[str, Any]:
        """Detalle del error para diagnóstico (solo fuera de producción)."""
        return {
            "name": type(self).__name__,
            "statusCode": self.status_code,
            "status": self.status,
            "message": self.message,
        }


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
