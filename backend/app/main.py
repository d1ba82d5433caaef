# backend/app/main.py
"""
Punto de entrada principal de la aplicación FastAPI.

Este módulo configura y inicializa la aplicación FastAPI completa,
incluyendo el logging, las rutas, el traductor de errores y los eventos
del ciclo de vida de la aplicación.

Características principales:
- Configuración centralizada de la aplicación
- Registro de routers de la API con prefijos
- Traducción de excepciones de dominio a respuestas `{status, message, error}`
- Creación de tablas al arrancar (opcional, AUTO_CREATE_TABLES)
"""

import logging

from fastapi import FastAPI
from app.core.config import settings  # Configuración centralizada de la aplicación
from app.api.v1.api_router import api_router_v1  # Router principal de la API v1
from app.api.error_handlers import register_exception_handlers
from app.db.database import init_models

# ========================================
# CONFIGURACIÓN DE LOGGING
# ========================================

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)

# ========================================
# CONFIGURACIÓN DE LA APLICACIÓN FASTAPI
# ========================================

app = FastAPI(
    title=settings.PROJECT_NAME,  # Nombre del proyecto desde configuración
    openapi_url=f"{settings.API_V1_STR}/openapi.json",  # URL del schema OpenAPI personalizada
    version=settings.PROJECT_VERSION,  # Versión del proyecto desde configuración
    description="API para la gestión de categorías jerárquicas de productos"
)

# ========================================
# REGISTRO DE ROUTERS Y MANEJADORES DE ERRORES
# ========================================

# El prefijo se obtiene de settings (típicamente "/api/v1")
app.include_router(api_router_v1, prefix=settings.API_V1_STR)
register_exception_handlers(app)


# ========================================
# ENDPOINTS RAÍZ Y VERIFICACIÓN DE ESTADO
# ========================================

@app.get("/", tags=["Root"])
async def read_root():
    """
    Endpoint raíz para verificación básica del estado de la API.

    Returns:
        dict: Mensaje de bienvenida con información del proyecto

    Example:
        GET /
        Response: {"message": "Bienvenido a Category Tree API v0.1.0"}
    """
    return {"message": f"Bienvenido a {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}"}

# ========================================
# EVENTOS DEL CICLO DE VIDA DE LA APLICACIÓN
# ========================================

@app.on_event("startup")
async def startup_event():
    """
    Evento ejecutado al iniciar la aplicación.

    Crea las tablas que falten si AUTO_CREATE_TABLES está activo. Un fallo
    aquí detiene el arranque: sin base de datos la API no puede servir nada.
    """
    if settings.AUTO_CREATE_TABLES:
        await init_models()
    logger.info(f"✅ {settings.PROJECT_NAME} v{settings.PROJECT_VERSION} iniciada ({settings.APP_ENVIRONMENT})")


# Arranque directo en desarrollo: python -m app.main
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
