# backend/app/crud/category_crud.py

"""
Operaciones CRUD para el modelo Category.

Este módulo implementa el almacén de categorías, proporcionando una capa de
abstracción entre el servicio de categorías y la base de datos.

Funcionalidades principales:
- Consultas por ID, por conjunto de IDs y por nombre
- Alta, actualización parcial, borrado y borrado múltiple
- Mantenimiento atómico del índice `children` (añadir / quitar hijos)
- Lectura de árboles con expansión de descendientes a profundidad fija
- Búsqueda por nombre sin distinguir mayúsculas

Patrones implementados:
- Repository pattern: Abstrae las consultas de SQLAlchemy
- Unit of work: estas funciones solo hacen flush; la transacción la abre y
  la confirma CategoryService, de modo que cada operación de negocio se
  persiste entera o no se persiste
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.category_model import Category
from app.schemas import category_schema # Importamos los schemas Pydantic para categorías

# ========================================
# OPERACIONES DE LECTURA (READ)
# ========================================

async def get_category(db: AsyncSession, category_id: str, for_update: bool = False) -> Optional[Category]:
    """
    Obtiene una categoría por su ID.

    Args:
        db: Sesión de SQLAlchemy
        category_id: ID único de la categoría
        for_update: Bloquea la fila hasta el final de la transacción

    Returns:
        Objeto Category si existe, None si no se encuentra
    """
    query = select(Category).filter(Category.id == category_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalars().first()


async def get_category_by_name(db: AsyncSession, name: str) -> Optional[Category]:
    """
    Obtiene una categoría por su nombre ya normalizado.

    Se usa para validar la unicidad del nombre antes de crear o renombrar.
    """
    result = await db.execute(select(Category).filter(Category.name == name))
    return result.scalars().first()


async def get_categories_by_ids(
    db: AsyncSession, category_ids: Iterable[str], for_update: bool = False
) -> List[Category]:
    """
    Obtiene las categorías cuyos IDs están en `category_ids`.

    Los IDs inexistentes se ignoran; el orden del resultado sigue el orden
    de `category_ids`.
    """
    ids = list(dict.fromkeys(category_ids))
    if not ids:
        return []
    query = select(Category).filter(Category.id.in_(ids))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    found = {category.id: category for category in result.scalars().all()}
    return [found[category_id] for category_id in ids if category_id in found]


async def get_category_and_all_children_ids(db: AsyncSession, category_id: str) -> List[str]:
    """
    Obtiene el ID de la categoría dada y los IDs de toda su descendencia.
    Utiliza una consulta recursiva (CTE) sobre parent_id para recorrer la jerarquía.
    """
    category_cte = select(Category.id).filter(Category.id == category_id).cte(name='category_cte', recursive=True)

    recursive_part = select(Category.id).join(category_cte, Category.parent_id == category_cte.c.id)

    full_cte = category_cte.union_all(recursive_part)

    result = await db.execute(select(full_cte.c.id))

    return [r[0] for r in result.fetchall()]


async def _expand_children(db: AsyncSession, categories: Sequence[Category], depth: int) -> List[Dict[str, Any]]:
    """
    Convierte las categorías en nodos (dict) y sustituye, hasta `depth`
    niveles, los IDs de `children` por los nodos completos de los hijos.

    Los IDs que ya no existen se descartan, igual que en un join.
    """
    nodes = [category_schema.CategoryResponse.model_validate(category).model_dump() for category in categories]
    if depth <= 0:
        return nodes

    child_ids = [child_id for category in categories for child_id in category.children]
    children = await get_categories_by_ids(db, child_ids)
    expanded = {node["id"]: node for node in await _expand_children(db, children, depth - 1)}

    for node in nodes:
        node["children"] = [expanded[child_id] for child_id in node["children"] if child_id in expanded]
    return nodes


async def get_category_tree(
    db: AsyncSession,
    root_filter: Optional[Dict[str, Any]] = None,
    depth: int = 2,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Obtiene las categorías que cumplen `root_filter` con su descendencia expandida.

    Args:
        db: Sesión de SQLAlchemy
        root_filter: Columna -> valor; un valor None se traduce a IS NULL.
            Ejemplos: {"parent_id": None} (raíces), {"id": "abc"}
        depth: Niveles de hijos a expandir (2 = hijos y nietos)
        skip: Número de raíces a omitir (paginación)
        limit: Número máximo de raíces a devolver

    Returns:
        Lista de nodos (dict) con los hijos anidados
    """
    query = select(Category)
    for column_name, value in (root_filter or {}).items():
        column = getattr(Category, column_name)
        query = query.filter(column.is_(None) if value is None else column == value)
    query = query.order_by(Category.created_at, Category.id).offset(skip)
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return await _expand_children(db, result.scalars().all(), depth)


async def search_categories_by_name(db: AsyncSession, key: str, depth: int = 1) -> List[Dict[str, Any]]:
    """
    Busca categorías cuyo nombre contiene `key`, sin distinguir mayúsculas.

    `key` se trata como texto literal: los comodines de LIKE se escapan.
    """
    escaped = key.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    query = (
        select(Category)
        .filter(Category.name.ilike(f"%{escaped}%", escape="\\"))
        .order_by(Category.name)
    )
    result = await db.execute(query)
    return await _expand_children(db, result.scalars().all(), depth)


# ========================================
# OPERACIONES DE ESCRITURA (CREATE, UPDATE, DELETE)
# ========================================

async def create_category(db: AsyncSession, category: category_schema.CategoryCreate) -> Category:
    """
    Crea una nueva categoría.

    El ID se genera en el modelo y `children` arranca vacío. La unicidad del
    nombre y la existencia del padre se validan antes, en el servicio.
    """
    db_category = Category(
        name=category.name,
        description=category.description,
        status=category.status,
        stock_availability=category.stock_availability,
        parent_id=category.parent_id,
        children=[],
    )
    db.add(db_category)
    await db.flush()
    await db.refresh(db_category)  # Recarga el objeto con datos actualizados de la BD
    return db_category


async def update_category(db: AsyncSession, category_id: str, update_data: Dict[str, Any]) -> Optional[Category]:
    """
    Actualiza una categoría existente con los campos de `update_data`.

    Returns:
        Objeto Category actualizado, o None si no existe
    """
    db_category = await get_category(db, category_id=category_id)
    if not db_category:
        return None

    for key, value in update_data.items():
        setattr(db_category, key, value)

    db.add(db_category)  # Marca el objeto como modificado
    await db.flush()
    await db.refresh(db_category)
    return db_category


async def delete_category(db: AsyncSession, category_id: str) -> Optional[Category]:
    """
    Elimina una categoría.

    Returns:
        Objeto Category eliminado, o None si no existía
    """
    db_category = await get_category(db, category_id)
    if db_category:
        await db.delete(db_category)
        await db.flush()
    return db_category


async def delete_categories(db: AsyncSession, category_ids: Iterable[str]) -> int:
    """Elimina en una sola sentencia todas las categorías indicadas. Devuelve cuántas se borraron."""
    ids = list(dict.fromkeys(category_ids))
    if not ids:
        return 0
    result = await db.execute(delete(Category).where(Category.id.in_(ids)))
    await db.flush()
    return result.rowcount


# ========================================
# MANTENIMIENTO DEL ÍNDICE `children`
# ========================================

async def push_child(db: AsyncSession, parent_id: str, child_id: str) -> Optional[Category]:
    """
    Añade `child_id` al conjunto `children` del padre (sin duplicados).

    La fila del padre se bloquea mientras se reescribe la lista.

    Returns:
        El padre actualizado, o None si no existe
    """
    parent = await get_category(db, parent_id, for_update=True)
    if not parent:
        return None
    if child_id not in parent.children:
        # Asignar una lista nueva para que SQLAlchemy detecte el cambio en la columna JSON
        parent.children = [*parent.children, child_id]
        await db.flush()
    return parent


async def pull_children(db: AsyncSession, updates: Sequence[Tuple[str, str]]) -> None:
    """
    Quita cada `child_id` del conjunto `children` de su `parent_id`.

    Args:
        updates: Pares (parent_id, child_id). Los padres inexistentes se ignoran.
    """
    removals: Dict[str, Set[str]] = {}
    for parent_id, child_id in updates:
        removals.setdefault(parent_id, set()).add(child_id)
    if not removals:
        return

    parents = await get_categories_by_ids(db, removals.keys(), for_update=True)
    for parent in parents:
        remaining = [child_id for child_id in parent.children if child_id not in removals[parent.id]]
        if len(remaining) != len(parent.children):
            parent.children = remaining
    await db.flush()
