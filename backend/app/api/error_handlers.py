# backend/app/api/error_handlers.py
"""
Traductor centralizado de errores a respuestas HTTP.

Todas las respuestas de error comparten el sobre `{status, message, error}`.
El campo `error` con el detalle de la excepción solo se incluye fuera de
producción, para diagnóstico.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import AppError, InternalError, ValidationError

logger = logging.getLogger(__name__)


def build_error_response(exc: AppError) -> JSONResponse:
    content = {"status": exc.status, "message": exc.message}
    if not settings.is_production:
        content["error"] = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=content)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"⚠️  {request.method} {request.url.path}: {exc.message}")
    return build_error_response(exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Cuerpos o parámetros que FastAPI no puede interpretar (JSON inválido, tipos)."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return await app_error_handler(request, ValidationError("Validation error: " + ". ".join(messages)))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"❌ Error no controlado en {request.method} {request.url.path}: {exc}", exc_info=True)
    return build_error_response(InternalError("Something went very wrong!"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
