"""
Endpoints REST para el árbol de categorías.

Los cuerpos de las peticiones se reciben como JSON sin tipar y los valida
CategoryService, que decide qué errores informar (todos en el alta, el
primero en la actualización) y distingue un `parentId` omitido de uno null.
"""

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from app.api import deps
from app.schemas import category_schema
from app.services.category_service import category_service

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post(
    "/createCategory",
    response_model=category_schema.CategoryEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    *,
    db: AsyncSession = Depends(deps.get_db),
    payload: Dict[str, Any] = Body(...),
) -> category_schema.CategoryEnvelope:
    """Crea una nueva categoría raíz (parentId null) o hija de otra existente."""
    category = await category_service.create_new_category(db, payload)
    return category_schema.CategoryEnvelope(data=category_schema.CategoryResponse.model_validate(category))


@router.get("/getParentById/{category_id}", response_model=category_schema.CategoryTreeEnvelope)
async def read_category(
    *,
    db: AsyncSession = Depends(deps.get_db),
    category_id: str,
) -> category_schema.CategoryTreeEnvelope:
    """Obtiene una categoría con sus hijos y nietos anidados."""
    category = await category_service.get_category_tree_by_id(db, category_id)
    return category_schema.CategoryTreeEnvelope(data=category)


@router.patch("/updateCategory/{category_id}", response_model=category_schema.CategoryUpdateEnvelope)
async def update_category(
    *,
    db: AsyncSession = Depends(deps.get_db),
    category_id: str,
    payload: Dict[str, Any] = Body(...),
) -> category_schema.CategoryUpdateEnvelope:
    """Actualiza campos de una categoría y, si se indica parentId, la cambia de padre."""
    category = await category_service.update_existing_category(db, category_id, payload)
    return category_schema.CategoryUpdateEnvelope(data=category_schema.CategoryResponse.model_validate(category))


@router.get("/allCategories", response_model=category_schema.CategoryTreeListEnvelope)
async def read_categories(
    db: AsyncSession = Depends(deps.get_db),
    status_filter: Optional[category_schema.CategoryStatus] = Query(None, alias="status"),
    stock_availability: Optional[bool] = Query(None, alias="stockAvailability"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    sort: Optional[str] = None,
) -> category_schema.CategoryTreeListEnvelope:
    """Obtiene las categorías raíz con dos niveles de descendencia, con filtros y paginación."""
    categories = await category_service.get_all_categories(
        db,
        status=status_filter.value if status_filter else None,
        stock_availability=stock_availability,
        skip=skip,
        limit=limit,
        sort=sort,
    )
    return category_schema.CategoryTreeListEnvelope(results=len(categories), data=categories)


@router.delete("/deleteCategoryById/{category_id}", response_model=category_schema.CategoryDeleteEnvelope)
async def delete_category(
    *,
    db: AsyncSession = Depends(deps.get_db),
    category_id: str,
) -> category_schema.CategoryDeleteEnvelope:
    """Elimina una categoría sin hijos."""
    deleted_category = await category_service.delete_existing_category(db, category_id)
    return category_schema.CategoryDeleteEnvelope(data=deleted_category)


@router.post("/deleteCategoriesById", response_model=category_schema.CategoryBulkDeleteEnvelope)
async def delete_categories(
    *,
    db: AsyncSession = Depends(deps.get_db),
    payload: Dict[str, Any] = Body(...),
) -> category_schema.CategoryBulkDeleteEnvelope:
    """Elimina en bloque las categorías de `ids`; si alguna tiene hijos no se borra ninguna."""
    deleted = await category_service.delete_multiple_categories(db, payload.get("ids"))
    return category_schema.CategoryBulkDeleteEnvelope(results=len(deleted), data=deleted)


@router.get("/searchByChildName/{key}", response_model=category_schema.CategoryTreeListEnvelope)
async def search_categories(
    *,
    db: AsyncSession = Depends(deps.get_db),
    key: str,
) -> category_schema.CategoryTreeListEnvelope:
    """Busca categorías por nombre (subcadena, sin distinguir mayúsculas)."""
    logger.info(f"🔍 CATEGORÍAS: Buscando '{key}'")
    categories = await category_service.search_categories(db, key)
    return category_schema.CategoryTreeListEnvelope(results=len(categories), data=categories)
