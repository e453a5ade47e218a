# Overview: Service-layer operations for inventory; catalogue, live pieces and the sold archive.

"""
Inventory Service

Two stores live here:
- products:       unsold pieces, one row per SKU
- sold_products:  archive of sold pieces, tagged with the invoice that sold them

A piece is in exactly one of them at any time. The move between the two
happens only inside the sale and reversal transactions (sales_service),
which call archive_product / restore_product below during their write phase.
Unsold pieces may be edited in place (update_product); archived ones may not.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import Category, Product, SoldProduct
from ..money_utils import ZERO
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, optional_str
from .concurrency import begin_write_transaction, run_with_retry
from .document_service import allocate_next, read_sequence
from .pricing_service import (
    BULLION_COIN_CATEGORY_ID,
    TIERED_MATERIAL,
    ItemAttributes,
    validate_item,
)


DEFAULT_CATEGORIES = [
    ("cat001", "Rings"),
    ("cat002", "Tops"),
    ("cat003", "Balis"),
    ("cat004", "Lockets"),
    ("cat005", "Bracelets"),
    ("cat006", "Bracelet and Ring Set"),
    ("cat007", "Bangles"),
    ("cat008", "Chains"),
    ("cat009", "Bands"),
    ("cat010", "Locket Sets without Bangle"),
    ("cat011", "Locket Set with Bangle"),
    ("cat012", "String Sets"),
    ("cat013", "Stone Necklace Sets without Bracelets"),
    ("cat014", "Stone Necklace Sets with Bracelets"),
    ("cat015", "Gold Necklace Sets with Bracelets"),
    ("cat016", "Gold Necklace Sets without Bracelets"),
    (BULLION_COIN_CATEGORY_ID, "Gold Coins"),
]


# =============================================================================
# CATEGORIES
# =============================================================================

def sku_prefix(category: Category) -> str:
    """First three letters of the title, upper-cased ("Rings" -> "RIN")."""
    letters = "".join(ch for ch in category.title if ch.isalnum())
    if len(letters) < 3:
        raise ValidationError(f"Category title too short for a SKU prefix: {category.title!r}")
    return letters[:3].upper()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.id.asc()).all()


def create_category(title: Any, category_id: Any = None) -> Category:
    """
    Add a category. Without an explicit id the next free "catNNN" is used.
    """
    title = optional_str(title, 128)
    if not title:
        raise ValidationError("title is required")
    category_id = optional_str(category_id, 32)

    def _op():
        begin_write_transaction()
        if category_id:
            if db.session.get(Category, category_id) is not None:
                raise ConflictError(f"Category {category_id} already exists")
            new_id = category_id
        else:
            existing = [row[0] for row in db.session.query(Category.id).all()]
            numbers = [int(cid[3:]) for cid in existing if cid.startswith("cat") and cid[3:].isdigit()]
            new_id = f"cat{(max(numbers, default=0) + 1):03d}"

        category = Category(id=new_id, title=title)
        sku_prefix(category)
        db.session.add(category)
        db.session.commit()
        current_app.logger.info("Category %s created: %s", category.id, category.title)
        return category

    return run_with_retry(_op)


def ensure_default_categories() -> int:
    """
    Seed the shop's standard categories (including the bullion-coin one).

    Safe to call repeatedly (idempotent). Returns the number created.
    """
    existing = {row[0] for row in db.session.query(Category.id).all()}
    created = 0
    for category_id, title in DEFAULT_CATEGORIES:
        if category_id not in existing:
            db.session.add(Category(id=category_id, title=title))
            created += 1
    db.session.commit()
    return created


# =============================================================================
# PRODUCTS
# =============================================================================

def _normalize_new_item(item: ItemAttributes) -> ItemAttributes:
    changes: dict[str, Any] = {}
    if item.primary_material != TIERED_MATERIAL and item.purity_tier:
        changes["purity_tier"] = None
    if item.secondary_material != TIERED_MATERIAL and item.secondary_purity_tier:
        changes["secondary_purity_tier"] = None
    if not item.has_diamonds and item.diamond_charge:
        changes["diamond_charge"] = ZERO
    if not item.has_gemstones and item.gemstone_weight_grams:
        changes["gemstone_weight_grams"] = ZERO
    return item.with_updates(**changes) if changes else item


def _require_finite_numbers(item: ItemAttributes) -> None:
    for name in ("gross_weight_grams", "secondary_weight_grams", "gemstone_weight_grams",
                 "wastage_percentage", "labor_charge", "diamond_charge",
                 "gemstone_charge", "misc_charge", "manual_price"):
        if not getattr(item, name).is_finite():
            raise ValidationError(f"{name} must be a finite number")


def add_product(attrs: Mapping[str, Any]) -> Product:
    """
    Create an inventory piece.

    The SKU is minted from the category prefix and a per-prefix counter
    ("sku:RIN" -> RIN-000001). A missing name defaults to "<Title> - <SKU>".

    Raises:
        ValidationError: bad attributes, non-finite numbers, unknown category
    """
    item = ItemAttributes.from_dict(attrs)
    validate_item(item)
    _require_finite_numbers(item)
    if not item.category_id:
        raise ValidationError("category_id is required")
    item = _normalize_new_item(item)

    def _op():
        begin_write_transaction()

        # Read phase
        category = db.session.get(Category, item.category_id)
        if category is None:
            raise ValidationError(f"Unknown category: {item.category_id}")
        prefix = sku_prefix(category)
        counter = read_sequence(f"sku:{prefix}")

        # Write phase
        sku = allocate_next(counter, prefix)
        if db.session.get(Product, sku) is not None or db.session.get(SoldProduct, sku) is not None:
            raise ConflictError(f"SKU {sku} already exists")
        final = item.with_updates(sku=sku, name=item.name or f"{category.title} - {sku}")
        product = Product(**final.column_values())
        db.session.add(product)
        db.session.commit()
        current_app.logger.info("Product %s added to inventory", sku)
        return product

    return run_with_retry(_op)


def update_product(sku: str, changes: Any) -> Product | None:
    """
    Edit an unsold piece in place; the SKU never changes.

    `changes` is a partial attribute dict laid over the current row and the
    result is revalidated as a whole. Returns None if the SKU is unknown.

    Raises:
        ValidationError: bad attributes, non-finite numbers, unknown category
        ConflictError: the piece has been sold
    """
    if not isinstance(changes, Mapping):
        raise ValidationError("Product changes must be an object")
    changes = {k: v for k, v in changes.items() if k != "sku"}
    # Parse now so bad numbers fail before any transaction opens
    ItemAttributes.from_dict(changes)

    def _op():
        begin_write_transaction()

        # Read phase
        product = db.session.get(Product, sku)
        if product is None:
            if db.session.get(SoldProduct, sku) is not None:
                raise ConflictError(f"SKU {sku} has been sold and cannot be edited", {"sku": sku})
            db.session.rollback()
            return None

        merged = ItemAttributes.from_row(product).to_dict()
        merged.update(changes)
        item = ItemAttributes.from_dict(merged)
        validate_item(item)
        _require_finite_numbers(item)
        if not item.category_id:
            raise ValidationError("category_id is required")
        if db.session.get(Category, item.category_id) is None:
            raise ValidationError(f"Unknown category: {item.category_id}")
        item = _normalize_new_item(item.with_updates(sku=sku, name=item.name or product.name))

        # Write phase
        for column, value in item.column_values().items():
            setattr(product, column, value)
        db.session.commit()
        current_app.logger.info("Product %s updated", sku)
        return product

    return run_with_retry(_op)


def get_product(sku: str) -> Product | None:
    return db.session.get(Product, sku)


def get_sold_product(sku: str) -> SoldProduct | None:
    return db.session.get(SoldProduct, sku)


def list_products(category_id: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    """
    Inventory listing, optionally filtered by category and paginated.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if category_id:
        base_query = base_query.filter(Product.category_id == category_id)
    base_query = base_query.order_by(Product.sku.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def delete_product(sku: str) -> bool:
    """Remove an unsold piece. Returns False if it is not in inventory."""
    def _op():
        begin_write_transaction()
        product = db.session.get(Product, sku)
        if product is None:
            db.session.rollback()
            return False
        db.session.delete(product)
        db.session.commit()
        current_app.logger.info("Product %s deleted from inventory", sku)
        return True

    return run_with_retry(_op)


def item_for_cart(sku: str, reissued_from: str | None = None) -> ItemAttributes:
    """
    Cart entry for a live piece.

    With `reissued_from`, a piece still archived under that (reversed)
    invoice is also accepted, for re-selling it in an edited sale.

    Raises:
        ConflictError: the piece is not (or no longer) in inventory
    """
    product = get_product(sku)
    if product is not None:
        return ItemAttributes.from_row(product)
    if reissued_from:
        sold = get_sold_product(sku)
        if sold is not None and sold.invoice_id == reissued_from:
            return ItemAttributes.from_row(sold)
    raise ConflictError("item no longer available", {"sku": sku})


# =============================================================================
# SOLD ARCHIVE (write-phase helpers for the sale/reversal transactions)
# =============================================================================

def archive_product(product: Product | None, item: ItemAttributes, invoice_id: str, existing: SoldProduct | None = None) -> SoldProduct:
    """
    Move a piece out of inventory into the sold archive.

    `product` is None when the piece was already archived by a reversed
    invoice (edit flow); `existing` is that archive row, re-tagged here and
    refreshed with the attributes the piece was re-sold with.
    No commit: the caller's transaction owns it.
    """
    if existing is not None:
        for column, value in item.column_values().items():
            if column != "sku":
                setattr(existing, column, value)
        existing.invoice_id = invoice_id
        existing.sold_at = utcnow()
        return existing

    source = ItemAttributes.from_row(product) if product is not None else item
    sold = SoldProduct(invoice_id=invoice_id, sold_at=utcnow(), **source.column_values())
    if product is not None:
        db.session.delete(product)
    db.session.add(sold)
    return sold


def restore_product(item: ItemAttributes, sold: SoldProduct | None) -> Product:
    """Put a piece back into inventory from its frozen invoice-line snapshot."""
    if sold is not None:
        db.session.delete(sold)
    product = Product(**item.column_values())
    db.session.add(product)
    return product
