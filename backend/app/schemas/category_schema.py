# backend/app/schemas/category_schema.py

"""
Esquemas Pydantic para el modelo Category.

Los esquemas definen la estructura de datos que fluye a través de la API:
- Validación de los campos de entrada (longitudes, patrón del nombre, estado)
- Normalización del nombre antes de persistirlo
- Serialización JSON en camelCase (parentId, stockAvailability, createdAt...)
- Separación entre modelo de base de datos y API

Patrón de esquemas utilizado:
- CategoryBase: Campos editables y sus validaciones
- CategoryCreate: Para crear nuevas categorías (POST)
- CategoryUpdate: Para actualizaciones parciales (PATCH)
- CategoryResponse / CategoryTreeResponse: Para respuestas de la API (GET)
- *Envelope: Sobres `{status, data}` que devuelven los endpoints
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500

_NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_category_name(name: str) -> str:
    """
    Normaliza el nombre de una categoría.

    Recorta los extremos, pone en mayúscula el primer carácter, el resto en
    minúsculas y colapsa los espacios internos consecutivos en uno solo.
    Es idempotente: normalizar un nombre ya normalizado no lo cambia.

    Ejemplos:
        "electronics"        -> "Electronics"
        "  home   goods "    -> "Home goods"
    """
    name = name.strip()
    if not name:
        return name
    return name[0].upper() + _WHITESPACE_RUN.sub(" ", name[1:].lower())


class CategoryStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ========================================
# ESQUEMA BASE
# ========================================

class CategoryBase(BaseModel):
    """
    Campos que el cliente puede proponer para una categoría.

    `children` no aparece aquí: es un índice derivado que solo mantiene el
    servicio. Cualquier campo desconocido se rechaza (extra="forbid").
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        use_enum_values=True,
    )

    name: str
    description: str
    status: CategoryStatus
    stock_availability: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < NAME_MIN_LENGTH:
            raise PydanticCustomError("name_too_short", "Name must be at least 3 characters long.")
        if len(value) > NAME_MAX_LENGTH:
            raise PydanticCustomError("name_too_long", "Name cannot exceed 50 characters.")
        if not _NAME_PATTERN.match(value):
            raise PydanticCustomError("name_pattern", "Special characters are not allowed in the name.")
        return normalize_category_name(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        if len(value) < DESCRIPTION_MIN_LENGTH:
            raise PydanticCustomError(
                "description_too_short", "Description must be at least 10 characters long."
            )
        if len(value) > DESCRIPTION_MAX_LENGTH:
            raise PydanticCustomError(
                "description_too_long", "Description cannot exceed 500 characters."
            )
        return value


# ========================================
# ESQUEMAS PARA OPERACIONES
# ========================================

class CategoryCreate(CategoryBase):
    """
    Esquema para crear una nueva categoría.

    `parentId` debe venir siempre en el cuerpo: null para una categoría raíz
    o el ID de una categoría existente. El servicio distingue "omitido" de
    "null" mediante `model_fields_set`.

    Ejemplo de uso:
    POST /api/v1/categories/createCategory
    {
        "name": "Electronics",
        "description": "Devices and gadgets",
        "status": "active",
        "parentId": null
    }
    """
    parent_id: Optional[str] = Field(default=None, min_length=1)


class CategoryUpdate(CategoryBase):
    """
    Esquema para actualizaciones parciales. Todos los campos son opcionales,
    pero los que se envían se validan con las mismas reglas que en la creación.
    Solo `parentId` admite null (convierte la categoría en raíz).
    """
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[CategoryStatus] = None
    stock_availability: Optional[bool] = None
    parent_id: Optional[str] = Field(default=None, min_length=1)

    @field_validator("name", "description", "status", "stock_availability", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("null_not_allowed", "Field cannot be null.")
        return value


# ========================================
# ESQUEMAS DE RESPUESTA
# ========================================

class CategoryResponse(BaseModel):
    """Categoría tal como se guarda: `children` contiene solo IDs."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    parent_id: Optional[str] = None
    name: str
    description: str
    status: CategoryStatus
    stock_availability: bool = False
    children: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryTreeResponse(CategoryResponse):
    """
    Categoría con descendencia expandida.

    Hasta la profundidad pedida los hijos son categorías completas; en el
    último nivel expandido los hijos vuelven a ser IDs.
    """
    children: List[Union["CategoryTreeResponse", str]] = []


# Resolución de la referencia recursiva en CategoryTreeResponse
CategoryTreeResponse.model_rebuild()


class CategoryEnvelope(BaseModel):
    status: str = "Success"
    data: CategoryResponse


class CategoryUpdateEnvelope(CategoryEnvelope):
    message: str = "Updated successfully"


class CategoryDeleteEnvelope(CategoryEnvelope):
    message: str = "Deleted successfully"


class CategoryBulkDeleteEnvelope(BaseModel):
    status: str = "Success"
    message: str = "Deleted successfully"
    results: int
    data: List[CategoryResponse]


class CategoryTreeEnvelope(BaseModel):
    status: str = "Success"
    data: CategoryTreeResponse


class CategoryTreeListEnvelope(BaseModel):
    status: str = "Success"
    results: int
    data: List[CategoryTreeResponse]
