from __future__ import annotations

from ..extensions import db
from ..money_utils import decimal_to_str
from ..time_utils import to_utc_z


class RateEntry(db.Model):
    """
    Per-material, per-purity unit price (the shop's Rate Table).

    Each gold purity tier is its own row and is set independently;
    tiers are never derived from a single 24k base rate.
    Untiered materials store purity_tier = "" so the unique
    constraint holds on every database.
    """
    __tablename__ = "rate_entries"
    __table_args__ = (
        db.UniqueConstraint("material", "purity_tier", name="uq_rate_entries_material_tier"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    material = db.Column(db.String(32), nullable=False, index=True)
    purity_tier = db.Column(db.String(8), nullable=False, default="")
    unit_price_per_gram = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<RateEntry {self.material}:{self.purity_tier or '-'} {self.unit_price_per_gram}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material": self.material,
            "purity_tier": self.purity_tier or None,
            "unit_price_per_gram": decimal_to_str(self.unit_price_per_gram),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
