# backend/app/services/category_service.py
"""
Servicio para operaciones de negocio relacionadas con categorías.

Este servicio es el único que escribe el índice `children`. Garantiza que,
tras cada operación, el conjunto `children` de cada categoría sea
exactamente el de las categorías cuyo `parent_id` apunta a ella, y que el
grafo de padres no tenga ciclos.

Reglas que aplica:
- Una categoría nueva declara explícitamente su padre (ID existente o null)
- Una categoría nunca es su propio padre ni cuelga de un descendiente suyo
- Un `parentId` no nulo debe referenciar una categoría existente
- No se borra una categoría que todavía tiene hijos
- El nombre normalizado es único

Cada operación de escritura se ejecuta en una única transacción: los
cambios en padre antiguo, padre nuevo y la propia categoría se confirman
juntos o se descartan juntos.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AppError,
    ConflictError,
    InternalError,
    InvalidRequestError,
    NotFoundError,
    ValidationError,
)
from app.crud import category_crud
from app.db.models.category_model import Category
from app.schemas import category_schema

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Claves que JavaScript convertiría a número: decimales, exponentes, Infinity y literales 0x/0b/0o
_NUMERIC_KEY = re.compile(
    r"^\s*([-+]?(Infinity|(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?)|0[xX][0-9a-fA-F]+|0[bB][01]+|0[oO][0-7]+)\s*$"
)

# Campos por los que se puede ordenar el listado (camelCase y snake_case)
SORTABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "status": "status",
    "stockAvailability": "stock_availability",
    "stock_availability": "stock_availability",
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
}


@asynccontextmanager
async def unit_of_work(db: AsyncSession, action: str):
    """
    Ejecuta un bloque como una única transacción.

    Confirma al salir sin errores. Ante cualquier error deshace los cambios;
    los errores de SQLAlchemy se traducen a ConflictError (restricciones de
    unicidad) o InternalError (resto de fallos del almacenamiento).
    """
    try:
        yield
        await db.commit()
    except AppError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Violación de integridad durante '{action}': {e.orig}")
        raise ConflictError("Duplicate field value. Please use another value.") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error de base de datos durante '{action}': {e}", exc_info=True)
        raise InternalError("Something went wrong while accessing the category store.") from e


def _format_validation_errors(exc: PydanticValidationError, first_only: bool) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    if first_only:
        messages = messages[:1]
    return "Validation error: " + ". ".join(messages)


class CategoryService:
    """
    Gestor del árbol de categorías.

    Encapsula la creación, actualización (incluido el cambio de padre),
    el borrado simple y múltiple, la lectura con descendencia anidada y la
    búsqueda por nombre, manteniendo coherentes `parent_id` y `children`.
    """

    # ========================================
    # VALIDACIONES AUXILIARES
    # ========================================

    def _parse(self, schema: Type[SchemaT], payload: Any, first_only: bool) -> SchemaT:
        """
        Valida el cuerpo de la petición contra `schema`.

        En la creación se informan todos los errores; en la actualización,
        solo el primero.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Validation error: request body must be a JSON object.")
        try:
            return schema.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(_format_validation_errors(e, first_only)) from e

    async def _ensure_unique_name(self, db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> None:
        existing = await category_crud.get_category_by_name(db, name)
        if existing and existing.id != exclude_id:
            raise ConflictError(f'Duplicate field value: {{"name":"{name}"}}. Please use another value.')

    @staticmethod
    def _is_numeric(key: str) -> bool:
        return bool(_NUMERIC_KEY.match(key))

    # ========================================
    # OPERACIONES DE CONSULTA
    # ========================================

    async def get_all_categories(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        stock_availability: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
        sort: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Obtiene las categorías raíz con dos niveles de descendencia anidada.

        Orden de aplicación: filtro -> paginación -> ordenación (sobre la
        página obtenida).

        Raises:
            InvalidRequestError: si `sort` menciona un campo no ordenable
            NotFoundError: si no hay ninguna categoría que devolver
        """
        if limit > settings.MAX_PAGE_SIZE: # Prevenir consultas excesivamente grandes
            limit = settings.MAX_PAGE_SIZE

        sort_keys = self._parse_sort(sort)

        root_filter: Dict[str, Any] = {"parent_id": None}
        if status is not None:
            root_filter["status"] = status
        if stock_availability is not None:
            root_filter["stock_availability"] = stock_availability

        async with unit_of_work(db, "get_all_categories"):
            categories = await category_crud.get_category_tree(
                db, root_filter=root_filter, depth=2, skip=skip, limit=limit
            )

        for field, descending in reversed(sort_keys):
            categories.sort(key=lambda node: node[field], reverse=descending)

        if not categories:
            raise NotFoundError("No categories found")
        return categories

    def _parse_sort(self, sort: Optional[str]) -> List[tuple]:
        """Traduce "name,-createdAt" a [("name", False), ("created_at", True)]."""
        keys = []
        for raw in (sort or "").split(","):
            raw = raw.strip()
            if not raw:
                continue
            descending = raw.startswith("-")
            field = SORTABLE_FIELDS.get(raw.lstrip("-"))
            if field is None:
                raise InvalidRequestError(f"Cannot sort categories by '{raw.lstrip('-')}'.")
            keys.append((field, descending))
        return keys

    async def get_category_tree_by_id(self, db: AsyncSession, category_id: str) -> Dict[str, Any]:
        """
        Obtiene una categoría por su ID con dos niveles de descendencia anidada.

        Raises:
            NotFoundError: si la categoría no existe
        """
        async with unit_of_work(db, "get_category_tree_by_id"):
            categories = await category_crud.get_category_tree(db, root_filter={"id": category_id}, depth=2)
        if not categories:
            raise NotFoundError("Category not found with the provided ID.")
        return categories[0]

    async def search_categories(self, db: AsyncSession, key: Any) -> List[Dict[str, Any]]:
        """
        Busca categorías cuyo nombre contiene `key` (sin distinguir mayúsculas),
        con un nivel de hijos expandido.

        Raises:
            InvalidRequestError: si `key` está vacío o es puramente numérico
            NotFoundError: si ninguna categoría coincide
        """
        if not isinstance(key, str) or not key.strip() or self._is_numeric(key):
            raise InvalidRequestError(f"The {key} query parameter must be a string")

        async with unit_of_work(db, "search_categories"):
            categories = await category_crud.search_categories_by_name(db, key, depth=1)
        if not categories:
            raise NotFoundError("No categories found matching the search criteria")
        return categories

    # ========================================
    # OPERACIONES DE ESCRITURA CON LÓGICA DE NEGOCIO
    # ========================================

    async def create_new_category(self, db: AsyncSession, payload: Any) -> Category:
        """
        Crea una categoría y la enlaza con su padre.

        El alta de la categoría y su inclusión en `children` del padre se
        confirman en la misma transacción.

        Raises:
            ValidationError: con todos los campos inválidos
            InvalidRequestError: si no se indica `parentId` (ni valor ni null)
            NotFoundError: si `parentId` no corresponde a ninguna categoría
            ConflictError: si ya existe una categoría con ese nombre
        """
        category_in = self._parse(category_schema.CategoryCreate, payload, first_only=False)

        if "parent_id" not in category_in.model_fields_set:
            raise InvalidRequestError(
                "Please provide a valid parentId. To create a main category send parentId as null."
            )

        parent_id = category_in.parent_id
        async with unit_of_work(db, "create_category"):
            if parent_id is not None:
                parent = await category_crud.get_category(db, parent_id)
                if not parent:
                    raise NotFoundError("No parent found, please check parentId")

            await self._ensure_unique_name(db, category_in.name)
            category = await category_crud.create_category(db, category_in)

            # El padre puede haberse borrado entre la comprobación y el bloqueo
            if parent_id is not None and await category_crud.push_child(db, parent_id, category.id) is None:
                raise NotFoundError("No parent found, please check parentId")

        logger.info(f"Categoría '{category.name}' creada con ID {category.id} (padre: {parent_id})")
        return category

    async def update_existing_category(self, db: AsyncSession, category_id: str, payload: Any) -> Category:
        """
        Actualiza una categoría y, si cambia `parentId`, la mueve de padre.

        Protocolo de cambio de padre:
        1. `parentId` con valor: el nuevo padre debe existir y no puede ser un
           descendiente. Si difiere del padre actual, se quita la categoría de
           `children` del padre antiguo (si lo hay) y se añade al nuevo.
        2. `parentId` null: se quita de `children` del padre actual y pasa a
           ser raíz.
        3. `parentId` omitido: el enlace con el padre no se toca.

        Raises:
            ValidationError: con el primer campo inválido
            NotFoundError: si la categoría no existe
            InvalidRequestError: si el padre propuesto es ella misma, un
                descendiente suyo o no existe
            ConflictError: si el nuevo nombre ya está en uso
        """
        category_in = self._parse(category_schema.CategoryUpdate, payload, first_only=True)
        update_data = category_in.model_dump(exclude_unset=True)

        async with unit_of_work(db, "update_category"):
            db_category = await category_crud.get_category(db, category_id, for_update=True)
            if not db_category:
                raise NotFoundError("Category not found")

            if "parent_id" in update_data:
                new_parent_id = update_data["parent_id"]
                if new_parent_id == category_id:
                    raise InvalidRequestError("A category cannot be its own parent")

                if new_parent_id is not None:
                    await self._move_under(db, db_category, new_parent_id)
                elif db_category.parent_id is not None:
                    await category_crud.pull_children(db, [(db_category.parent_id, db_category.id)])

            if "name" in update_data and update_data["name"] != db_category.name:
                await self._ensure_unique_name(db, update_data["name"], exclude_id=category_id)

            db_category = await category_crud.update_category(db, category_id, update_data)

        logger.info(f"Categoría {category_id} actualizada: {sorted(update_data)}")
        return db_category

    async def _move_under(self, db: AsyncSession, category: Category, new_parent_id: str) -> None:
        new_parent = await category_crud.get_category(db, new_parent_id)
        if not new_parent:
            raise InvalidRequestError("Parent category not found. Provide a valid parentId.")

        descendant_ids = await category_crud.get_category_and_all_children_ids(db, category.id)
        if new_parent_id in descendant_ids:
            raise InvalidRequestError("Cannot move a category under one of its own descendants.")

        # Mismo padre: no se toca ninguna lista
        if category.parent_id == new_parent_id:
            return

        if category.parent_id is not None:
            await category_crud.pull_children(db, [(category.parent_id, category.id)])
        if await category_crud.push_child(db, new_parent_id, category.id) is None:
            raise InvalidRequestError("Parent category not found. Provide a valid parentId.")

    async def delete_existing_category(self, db: AsyncSession, category_id: str) -> category_schema.CategoryResponse:
        """
        Elimina una categoría sin hijos y la quita de `children` de su padre.

        Returns:
            Copia de la categoría tal como estaba antes de borrarla

        Raises:
            NotFoundError: si la categoría no existe
            ConflictError: si todavía tiene hijos
        """
        async with unit_of_work(db, "delete_category"):
            category = await category_crud.get_category(db, category_id, for_update=True)
            if not category:
                raise NotFoundError("Category not found")

            if category.children:
                raise ConflictError("This category has child categories. Please delete the children first.")

            snapshot = category_schema.CategoryResponse.model_validate(category)
            if category.parent_id is not None:
                await category_crud.pull_children(db, [(category.parent_id, category.id)])
            await category_crud.delete_category(db, category_id)

        logger.info(f"Categoría {category_id} eliminada")
        return snapshot

    async def delete_multiple_categories(self, db: AsyncSession, ids: Any) -> List[category_schema.CategoryResponse]:
        """
        Elimina varias categorías en bloque: o se borran todas las encontradas
        o no se borra ninguna.

        Los IDs que no existen se ignoran mientras al menos uno coincida.

        Raises:
            InvalidRequestError: si `ids` no es una lista no vacía de IDs
            NotFoundError: si ningún ID corresponde a una categoría
            ConflictError: si alguna de las categorías tiene hijos
        """
        if not isinstance(ids, list) or not ids or not all(isinstance(i, str) and i for i in ids):
            raise InvalidRequestError("Please provide an array of category IDs to delete.")

        async with unit_of_work(db, "delete_multiple_categories"):
            categories = await category_crud.get_categories_by_ids(db, ids, for_update=True)
            if not categories:
                raise NotFoundError("No categories found with the provided IDs")

            if any(category.children for category in categories):
                raise ConflictError("Some categories have child categories. Please delete the children first.")

            snapshots = [category_schema.CategoryResponse.model_validate(category) for category in categories]
            parent_updates = [
                (category.parent_id, category.id) for category in categories if category.parent_id is not None
            ]
            if parent_updates:
                await category_crud.pull_children(db, parent_updates)
            deleted = await category_crud.delete_categories(db, [category.id for category in categories])

        logger.info(f"{deleted} categorías eliminadas en bloque")
        return snapshots

# ========================================
# INSTANCIA SINGLETON DEL SERVICIO
# ========================================

# Instancia única del servicio para uso en endpoints
category_service = CategoryService()
