import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError, InvalidRequestError, NotFoundError, ValidationError
from app.crud import category_crud
from app.db.models.category_model import Category
from app.services.category_service import category_service

from conftest import category_payload, reload


async def _create(db, name, parent_id=None, **overrides):
    category = await category_service.create_new_category(db, category_payload(name, parent_id, **overrides))
    return category.id


async def _count(db):
    return (await db.execute(select(func.count(Category.id)))).scalar_one()


async def _assert_tree_consistent(db):
    """Cada ID en `children` apunta a una categoría cuyo parent_id es el padre, y viceversa."""
    categories = (await db.execute(select(Category).execution_options(populate_existing=True))).scalars().all()
    by_id = {category.id: category for category in categories}
    for category in categories:
        assert len(category.children) == len(set(category.children))
        for child_id in category.children:
            assert by_id[child_id].parent_id == category.id
        if category.parent_id is not None:
            assert category.id in by_id[category.parent_id].children
            holders = [other.id for other in categories if category.id in other.children]
            assert holders == [category.parent_id]


# ========================================
# CREACIÓN
# ========================================

async def test_create_root_and_child(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)

    assert (await reload(db, electronics)).children == [laptops]
    assert (await reload(db, laptops)).parent_id == electronics
    await _assert_tree_consistent(db)


async def test_create_with_missing_parent_persists_nothing(db):
    with pytest.raises(NotFoundError):
        await _create(db, "Orphans", "does-not-exist")
    assert await _count(db) == 0


async def test_create_requires_explicit_parent(db):
    payload = category_payload("Electronics")
    del payload["parentId"]
    with pytest.raises(InvalidRequestError):
        await category_service.create_new_category(db, payload)
    assert await _count(db) == 0


async def test_create_lists_all_validation_errors(db):
    with pytest.raises(ValidationError) as excinfo:
        await category_service.create_new_category(
            db, {"name": "x", "description": "short", "status": "active", "parentId": None}
        )
    assert "Name must be at least 3 characters long." in excinfo.value.message
    assert "Description must be at least 10 characters long." in excinfo.value.message


async def test_create_rejects_duplicate_normalized_name(db):
    await _create(db, "Home goods")
    with pytest.raises(ConflictError):
        await _create(db, "  HOME   goods")
    assert await _count(db) == 1


# ========================================
# ACTUALIZACIÓN Y CAMBIO DE PADRE
# ========================================

async def test_reparent_moves_child_between_parents(db):
    a = await _create(db, "Parent a")
    b = await _create(db, "Parent b")
    x = await _create(db, "Child x", a)

    updated = await category_service.update_existing_category(db, x, {"parentId": b})

    assert updated.parent_id == b
    assert x not in (await reload(db, a)).children
    assert (await reload(db, b)).children.count(x) == 1
    await _assert_tree_consistent(db)


async def test_reparent_root_under_parent(db):
    a = await _create(db, "Parent a")
    x = await _create(db, "Loose")

    await category_service.update_existing_category(db, x, {"parentId": a})

    assert (await reload(db, a)).children == [x]
    await _assert_tree_consistent(db)


async def test_same_parent_update_leaves_children_untouched(db):
    a = await _create(db, "Parent a")
    x = await _create(db, "Child x", a)

    await category_service.update_existing_category(db, x, {"parentId": a, "description": "Updated description"})

    assert (await reload(db, a)).children == [x]
    assert (await reload(db, x)).description == "Updated description"


async def test_null_parent_makes_category_root(db):
    a = await _create(db, "Parent a")
    x = await _create(db, "Child x", a)

    await category_service.update_existing_category(db, x, {"parentId": None})

    assert (await reload(db, a)).children == []
    assert (await reload(db, x)).parent_id is None
    await _assert_tree_consistent(db)


async def test_omitted_parent_keeps_linkage(db):
    a = await _create(db, "Parent a")
    x = await _create(db, "Child x", a)

    updated = await category_service.update_existing_category(db, x, {"name": "renamed   child"})

    assert updated.name == "Renamed child"
    assert updated.parent_id == a
    assert (await reload(db, a)).children == [x]


async def test_self_parent_is_rejected_without_changes(db):
    a = await _create(db, "Parent a")
    x = await _create(db, "Child x", a)

    with pytest.raises(InvalidRequestError):
        await category_service.update_existing_category(db, x, {"parentId": x, "description": "Never applied"})

    child = await reload(db, x)
    assert child.parent_id == a
    assert child.description != "Never applied"
    assert (await reload(db, a)).children == [x]


async def test_moving_under_descendant_is_rejected(db):
    root = await _create(db, "Root")
    child = await _create(db, "Child", root)
    grandchild = await _create(db, "Grandchild", child)

    with pytest.raises(InvalidRequestError):
        await category_service.update_existing_category(db, root, {"parentId": grandchild})
    await _assert_tree_consistent(db)


async def test_update_with_unknown_parent(db):
    x = await _create(db, "Loose")
    with pytest.raises(InvalidRequestError):
        await category_service.update_existing_category(db, x, {"parentId": "missing"})


async def test_update_missing_category(db):
    with pytest.raises(NotFoundError):
        await category_service.update_existing_category(db, "missing", {"description": "Nothing to update"})


async def test_update_reports_first_validation_error_only(db):
    x = await _create(db, "Loose")
    with pytest.raises(ValidationError) as excinfo:
        await category_service.update_existing_category(db, x, {"name": "x", "description": "short"})
    assert "Name must be at least 3 characters long." in excinfo.value.message
    assert "Description" not in excinfo.value.message


async def test_update_rejects_client_children(db):
    x = await _create(db, "Loose")
    with pytest.raises(ValidationError):
        await category_service.update_existing_category(db, x, {"children": ["abc"]})


async def test_rename_to_existing_name_conflicts(db):
    await _create(db, "Electronics")
    x = await _create(db, "Laptops")
    with pytest.raises(ConflictError):
        await category_service.update_existing_category(db, x, {"name": "electronics"})


# ========================================
# BORRADO
# ========================================

async def test_delete_with_children_is_blocked(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)

    with pytest.raises(ConflictError):
        await category_service.delete_existing_category(db, electronics)

    assert (await reload(db, electronics)).children == [laptops]
    assert (await reload(db, laptops)).parent_id == electronics


async def test_delete_leaf_detaches_from_parent(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)

    snapshot = await category_service.delete_existing_category(db, laptops)

    assert snapshot.id == laptops
    assert snapshot.parent_id == electronics
    assert await reload(db, laptops) is None
    assert (await reload(db, electronics)).children == []


async def test_delete_missing_category(db):
    with pytest.raises(NotFoundError):
        await category_service.delete_existing_category(db, "missing")


@pytest.mark.parametrize("ids", [None, [], "abc", [1, 2], [""]])
async def test_bulk_delete_requires_id_list(db, ids):
    with pytest.raises(InvalidRequestError):
        await category_service.delete_multiple_categories(db, ids)


async def test_bulk_delete_is_all_or_nothing(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)
    garden = await _create(db, "Garden")

    with pytest.raises(ConflictError):
        await category_service.delete_multiple_categories(db, [garden, electronics])

    assert await _count(db) == 3
    assert (await reload(db, electronics)).children == [laptops]


async def test_bulk_delete_detaches_from_parents(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)
    phones = await _create(db, "Phones", electronics)
    tablets = await _create(db, "Tablets", electronics)
    garden = await _create(db, "Garden")

    deleted = await category_service.delete_multiple_categories(db, [laptops, phones, garden, "missing"])

    assert {category.id for category in deleted} == {laptops, phones, garden}
    assert (await reload(db, electronics)).children == [tablets]
    assert await _count(db) == 2
    await _assert_tree_consistent(db)


async def test_bulk_delete_with_no_matches(db):
    with pytest.raises(NotFoundError):
        await category_service.delete_multiple_categories(db, ["missing"])


# ========================================
# CONSULTAS
# ========================================

async def test_get_all_returns_roots_with_nested_children(db):
    electronics = await _create(db, "Electronics")
    computers = await _create(db, "Computers", electronics)
    await _create(db, "Laptops", computers)
    await _create(db, "Garden", status="inactive")

    categories = await category_service.get_all_categories(db)
    assert [node["name"] for node in categories] == ["Electronics", "Garden"]
    assert categories[0]["children"][0]["id"] == computers
    assert categories[0]["children"][0]["children"][0]["name"] == "Laptops"

    active = await category_service.get_all_categories(db, status="active")
    assert [node["name"] for node in active] == ["Electronics"]

    by_name_desc = await category_service.get_all_categories(db, sort="-name")
    assert [node["name"] for node in by_name_desc] == ["Garden", "Electronics"]


async def test_get_all_empty_is_not_found(db):
    with pytest.raises(NotFoundError):
        await category_service.get_all_categories(db)


async def test_get_all_rejects_unknown_sort_field(db):
    await _create(db, "Electronics")
    with pytest.raises(InvalidRequestError):
        await category_service.get_all_categories(db, sort="children")


async def test_get_by_id(db):
    electronics = await _create(db, "Electronics")
    laptops = await _create(db, "Laptops", electronics)

    node = await category_service.get_category_tree_by_id(db, electronics)
    assert node["children"][0]["id"] == laptops

    with pytest.raises(NotFoundError):
        await category_service.get_category_tree_by_id(db, "missing")


async def test_search(db):
    electronics = await _create(db, "Electronics")
    await _create(db, "Laptops", electronics)

    found = await category_service.search_categories(db, "laptop")
    assert [node["name"] for node in found] == ["Laptops"]

    with pytest.raises(NotFoundError):
        await category_service.search_categories(db, "furniture")


@pytest.mark.parametrize("key", ["", "   ", "123", "4.5", "-2e3", "Infinity", "0x1A", "0b101", None])
async def test_search_rejects_invalid_keys(db, key):
    with pytest.raises(InvalidRequestError):
        await category_service.search_categories(db, key)


# ========================================
# TRANSACCIONES Y CONCURRENCIA
# ========================================

async def test_failed_update_rolls_back_reparent(db):
    a = await _create(db, "Parent a")
    b = await _create(db, "Parent b")
    x = await _create(db, "Child x", a)
    await _create(db, "Garden")

    with pytest.raises(ConflictError):
        await category_service.update_existing_category(db, x, {"parentId": b, "name": "garden"})

    assert (await reload(db, a)).children == [x]
    assert (await reload(db, b)).children == []
    assert (await reload(db, x)).parent_id == a
    await _assert_tree_consistent(db)


def _delete_after_lookup(monkeypatch, session_factory, target_id, deleted):
    """Borra `target_id` desde otra sesión justo después de que el servicio compruebe que existe."""
    original_get_category = category_crud.get_category

    async def get_category(session, category_id, for_update=False):
        found = await original_get_category(session, category_id, for_update=for_update)
        if category_id == target_id and not for_update and not deleted:
            deleted.append(target_id)
            async with session_factory() as other:
                await category_service.delete_existing_category(other, target_id)
        return found

    monkeypatch.setattr(category_crud, "get_category", get_category)


async def test_create_fails_when_parent_is_deleted_concurrently(db, session_factory, monkeypatch):
    parent = await _create(db, "Electronics")
    deleted = []
    _delete_after_lookup(monkeypatch, session_factory, parent, deleted)

    with pytest.raises(NotFoundError):
        await _create(db, "Laptops", parent)

    monkeypatch.undo()
    assert deleted
    assert await _count(db) == 0


async def test_reparent_fails_when_new_parent_is_deleted_concurrently(db, session_factory, monkeypatch):
    a = await _create(db, "Parent a")
    b = await _create(db, "Parent b")
    x = await _create(db, "Child x", a)
    deleted = []
    _delete_after_lookup(monkeypatch, session_factory, b, deleted)

    with pytest.raises(InvalidRequestError):
        await category_service.update_existing_category(db, x, {"parentId": b})

    monkeypatch.undo()
    assert deleted
    assert (await db.execute(select(Category).filter(Category.id == b))).scalars().first() is None
    assert (await reload(db, x)).parent_id == a
    assert (await reload(db, a)).children == [x]
    await _assert_tree_consistent(db)
