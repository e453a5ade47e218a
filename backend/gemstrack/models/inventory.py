from __future__ import annotations

from ..extensions import db
from ..money_utils import decimal_to_str
from ..time_utils import to_utc_z


class Category(db.Model):
    """Product category. The title's first three letters form the SKU prefix."""
    __tablename__ = "categories"

    id = db.Column(db.String(32), primary_key=True)
    title = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id!r} title={self.title!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": to_utc_z(self.created_at),
        }


class ItemColumnsMixin:
    """
    Columns shared by every physical-piece row (inventory, sold archive).

    Mirrors ItemAttributes in services/pricing_service.py one field per column.
    """
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.String(32), nullable=False, index=True)

    primary_material = db.Column(db.String(32), nullable=False, default="gold")
    purity_tier = db.Column(db.String(8), nullable=True)
    gross_weight_grams = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    secondary_material = db.Column(db.String(32), nullable=True)
    secondary_purity_tier = db.Column(db.String(8), nullable=True)
    secondary_weight_grams = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    has_gemstones = db.Column(db.Boolean, nullable=False, default=False)
    gemstone_weight_grams = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    wastage_percentage = db.Column(db.Numeric(7, 3), nullable=False, default=0)
    labor_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    has_diamonds = db.Column(db.Boolean, nullable=False, default=False)
    diamond_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    gemstone_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    misc_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Fixed price that bypasses the rate table entirely
    manual_price_enabled = db.Column(db.Boolean, nullable=False, default=False)
    manual_price = db.Column(db.Numeric(14, 2), nullable=True)

    def item_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "category_id": self.category_id,
            "primary_material": self.primary_material,
            "purity_tier": self.purity_tier,
            "gross_weight_grams": decimal_to_str(self.gross_weight_grams),
            "secondary_material": self.secondary_material,
            "secondary_purity_tier": self.secondary_purity_tier,
            "secondary_weight_grams": decimal_to_str(self.secondary_weight_grams),
            "has_gemstones": self.has_gemstones,
            "gemstone_weight_grams": decimal_to_str(self.gemstone_weight_grams),
            "wastage_percentage": decimal_to_str(self.wastage_percentage),
            "labor_charge": decimal_to_str(self.labor_charge),
            "has_diamonds": self.has_diamonds,
            "diamond_charge": decimal_to_str(self.diamond_charge),
            "gemstone_charge": decimal_to_str(self.gemstone_charge),
            "misc_charge": decimal_to_str(self.misc_charge),
            "manual_price_enabled": self.manual_price_enabled,
            "manual_price": decimal_to_str(self.manual_price),
        }


class Product(ItemColumnsMixin, db.Model):
    """
    Unsold inventory piece, keyed by SKU.

    Rows are never edited once sold: a sale deletes the row and writes an
    equivalent SoldProduct, and a reversal does the opposite.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category_id", "name"),
    )

    sku = db.Column(db.String(32), primary_key=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        data = self.item_dict()
        data.update({
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        })
        return data


class SoldProduct(ItemColumnsMixin, db.Model):
    """Sold-archive row kept for provenance and return handling."""
    __tablename__ = "sold_products"

    sku = db.Column(db.String(32), primary_key=True)
    invoice_id = db.Column(db.String(32), nullable=False, index=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<SoldProduct sku={self.sku!r} invoice_id={self.invoice_id!r}>"

    def to_dict(self) -> dict:
        data = self.item_dict()
        data.update({
            "invoice_id": self.invoice_id,
            "sold_at": to_utc_z(self.sold_at),
        })
        return data
