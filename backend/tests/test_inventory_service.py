"""
Inventory tests: categories, SKU minting, normalization, listing.
"""

from decimal import Decimal

import pytest

from gemstrack.models import Category
from gemstrack.services import inventory_service, sales_service
from gemstrack.services.inventory_service import DEFAULT_CATEGORIES, sku_prefix
from gemstrack.validation import ConflictError, ValidationError


def test_default_categories_are_idempotent(seeded):
    assert len(inventory_service.list_categories()) == len(DEFAULT_CATEGORIES)
    assert inventory_service.ensure_default_categories() == 0


def test_sku_prefix_from_title():
    assert sku_prefix(Category(id="x", title="Rings")) == "RIN"
    assert sku_prefix(Category(id="x", title="Nose-pins")) == "NOS"
    with pytest.raises(ValidationError):
        sku_prefix(Category(id="x", title="A-b"))


def test_skus_are_minted_per_category_prefix(make_product):
    assert make_product() == "RIN-000001"
    assert make_product() == "RIN-000002"
    assert make_product(category_id="cat008") == "CHA-000001"
    assert make_product(category_id="cat017") == "GOL-000001"


def test_default_name_uses_category_title(make_product):
    sku = make_product()
    assert inventory_service.get_product(sku).name == f"Rings - {sku}"

    named = make_product(name="Bridal ring")
    assert inventory_service.get_product(named).name == "Bridal ring"


def test_client_supplied_sku_is_ignored(make_product):
    assert make_product(sku="MY-OWN-SKU") == "RIN-000001"


def test_new_items_are_normalized(make_product):
    sku = make_product(
        primary_material="silver",
        purity_tier="22k",
        diamond_charge="500",
        gemstone_weight_grams="1",
    )
    product = inventory_service.get_product(sku)

    assert product.purity_tier is None
    assert product.diamond_charge == 0
    assert product.gemstone_weight_grams == 0


def test_add_product_validation(seeded):
    with pytest.raises(ValidationError):
        inventory_service.add_product({"primary_material": "gold", "gross_weight_grams": "5"})
    with pytest.raises(ValidationError):
        inventory_service.add_product({"category_id": "cat999", "gross_weight_grams": "5"})
    with pytest.raises(ValidationError):
        inventory_service.add_product({"category_id": "cat001", "gross_weight_grams": "NaN"})
    with pytest.raises(ValidationError):
        inventory_service.add_product({"category_id": "cat001", "primary_material": "copper"})
    with pytest.raises(ValidationError):
        inventory_service.add_product({
            "category_id": "cat001",
            "gross_weight_grams": "2",
            "has_gemstones": True,
            "gemstone_weight_grams": "3",
        })

    assert inventory_service.list_products()["count"] == 0


def test_create_category(seeded):
    category = inventory_service.create_category("Nose Pins")
    assert category.id == "cat018"
    assert category.title == "Nose Pins"

    custom = inventory_service.create_category("Anklets", category_id="anklets")
    assert custom.id == "anklets"

    with pytest.raises(ConflictError):
        inventory_service.create_category("Rings again", category_id="cat001")
    with pytest.raises(ValidationError):
        inventory_service.create_category("")
    with pytest.raises(ValidationError):
        inventory_service.create_category("Ab")


def test_list_products_filter_and_pagination(make_product):
    rings = [make_product() for _ in range(3)]
    chain = make_product(category_id="cat008")

    everything = inventory_service.list_products()
    assert everything["count"] == 4
    assert "pagination" not in everything

    only_chains = inventory_service.list_products(category_id="cat008")
    assert [p["sku"] for p in only_chains["items"]] == [chain]

    page = inventory_service.list_products(category_id="cat001", page=2, per_page=2)
    assert [p["sku"] for p in page["items"]] == [rings[2]]
    assert page["pagination"] == {
        "page": 2,
        "per_page": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": False,
        "has_prev": True,
    }


def test_delete_product(ring_sku):
    assert inventory_service.delete_product(ring_sku) is True
    assert inventory_service.get_product(ring_sku) is None
    assert inventory_service.delete_product(ring_sku) is False


def test_item_for_cart(ring_sku):
    item = inventory_service.item_for_cart(ring_sku)
    assert item.sku == ring_sku
    assert item.gross_weight_grams == Decimal("10")
    assert item.purity_tier == "21k"

    with pytest.raises(ConflictError) as excinfo:
        inventory_service.item_for_cart("RIN-999999")
    assert excinfo.value.details == {"sku": "RIN-999999"}


def test_update_product_edits_in_place(ring_sku):
    product = inventory_service.update_product(ring_sku, {
        "sku": "RIN-777777",
        "gross_weight_grams": "12.5",
        "labor_charge": "650",
        "name": "Engagement ring",
    })

    assert product.sku == ring_sku
    assert product.gross_weight_grams == Decimal("12.500")
    assert product.labor_charge == Decimal("650.00")
    assert product.name == "Engagement ring"
    # Untouched attributes survive
    assert product.purity_tier == "21k"
    assert product.wastage_percentage == Decimal("10")
    assert inventory_service.get_product("RIN-777777") is None


def test_update_product_revalidates_the_whole_piece(ring_sku):
    with pytest.raises(ValidationError):
        inventory_service.update_product(ring_sku, {"gemstone_weight_grams": "11"})
    with pytest.raises(ValidationError):
        inventory_service.update_product(ring_sku, {"purity_tier": "9k"})
    with pytest.raises(ValidationError):
        inventory_service.update_product(ring_sku, {"category_id": "cat999"})
    with pytest.raises(ValidationError):
        inventory_service.update_product(ring_sku, {"labor_charge": "Infinity"})
    with pytest.raises(ValidationError):
        inventory_service.update_product(ring_sku, ["labor_charge", "650"])

    assert inventory_service.get_product(ring_sku).gross_weight_grams == Decimal("10.000")


def test_update_product_keeps_name_when_blanked(ring_sku):
    before = inventory_service.get_product(ring_sku).name
    assert inventory_service.update_product(ring_sku, {"name": ""}).name == before


def test_sold_or_unknown_piece_cannot_be_updated(ring_sku):
    assert inventory_service.update_product("RIN-999999", {"labor_charge": "1"}) is None

    sales_service.create_invoice([inventory_service.item_for_cart(ring_sku)])
    with pytest.raises(ConflictError) as excinfo:
        inventory_service.update_product(ring_sku, {"labor_charge": "1"})
    assert excinfo.value.details == {"sku": ring_sku}
    assert inventory_service.get_sold_product(ring_sku).labor_charge == Decimal("500.00")
