import pytest
from pydantic import ValidationError

from app.schemas.category_schema import (
    CategoryCreate,
    CategoryTreeResponse,
    CategoryUpdate,
    normalize_category_name,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("electronics", "Electronics"),
        ("Electronics", "Electronics"),
        ("  home   goods ", "Home goods"),
        ("KITCHEN TOOLS", "Kitchen tools"),
    ],
)
def test_normalize_category_name(raw, expected):
    assert normalize_category_name(raw) == expected
    # idempotente
    assert normalize_category_name(expected) == expected


def test_create_normalizes_name_and_defaults_stock():
    category = CategoryCreate.model_validate(
        {"name": "  home   goods ", "description": "Everything for home", "status": "active", "parentId": None}
    )
    assert category.name == "Home goods"
    assert category.stock_availability is False
    assert "parent_id" in category.model_fields_set


def test_create_without_parent_id_leaves_it_unset():
    category = CategoryCreate.model_validate(
        {"name": "Toys", "description": "Toys for all ages", "status": "inactive"}
    )
    assert category.parent_id is None
    assert "parent_id" not in category.model_fields_set


def test_create_accepts_snake_case_fields():
    category = CategoryCreate.model_validate(
        {
            "name": "Garden",
            "description": "Garden supplies",
            "status": "active",
            "parent_id": "abc",
            "stock_availability": True,
        }
    )
    assert category.parent_id == "abc"
    assert category.stock_availability is True


def test_create_reports_every_invalid_field():
    with pytest.raises(ValidationError) as excinfo:
        CategoryCreate.model_validate(
            {"name": "a1", "description": "short", "status": "archived", "parentId": None}
        )
    fields = {error["loc"][0] for error in excinfo.value.errors()}
    assert fields == {"name", "description", "status"}


@pytest.mark.parametrize(
    "name, message",
    [
        ("ab", "Name must be at least 3 characters long."),
        ("a" * 51, "Name cannot exceed 50 characters."),
        ("Tools & more", "Special characters are not allowed in the name."),
    ],
)
def test_name_messages(name, message):
    with pytest.raises(ValidationError) as excinfo:
        CategoryCreate.model_validate(
            {"name": name, "description": "Valid description", "status": "active", "parentId": None}
        )
    assert excinfo.value.errors()[0]["msg"] == message


def test_children_cannot_be_set_by_client():
    with pytest.raises(ValidationError) as excinfo:
        CategoryUpdate.model_validate({"children": ["x"]})
    assert excinfo.value.errors()[0]["loc"] == ("children",)


def test_update_is_partial_but_rejects_null_fields():
    update = CategoryUpdate.model_validate({"description": "A brand new description"})
    assert update.model_dump(exclude_unset=True) == {"description": "A brand new description"}

    with pytest.raises(ValidationError):
        CategoryUpdate.model_validate({"name": None})


def test_update_allows_null_parent():
    update = CategoryUpdate.model_validate({"parentId": None})
    assert update.model_dump(exclude_unset=True) == {"parent_id": None}


def test_tree_response_mixes_nodes_and_ids():
    tree = CategoryTreeResponse.model_validate(
        {
            "id": "root",
            "name": "Electronics",
            "description": "Devices and gadgets",
            "status": "active",
            "children": [
                {
                    "id": "child",
                    "parent_id": "root",
                    "name": "Laptops",
                    "description": "Portable computers",
                    "status": "active",
                    "children": ["grandchild"],
                }
            ],
        }
    )
    child = tree.children[0]
    assert isinstance(child, CategoryTreeResponse)
    assert child.children == ["grandchild"]
    assert tree.model_dump(by_alias=True)["children"][0]["parentId"] == "root"
