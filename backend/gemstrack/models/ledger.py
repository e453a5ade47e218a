from __future__ import annotations

from ..extensions import db
from ..money_utils import decimal_to_str
from ..time_utils import to_utc_z


ENTITY_CUSTOMER = "customer"
ENTITY_ARTISAN = "artisan"
ENTITY_KINDS = (ENTITY_CUSTOMER, ENTITY_ARTISAN)

# Synthetic ledger entity for sales with no named customer
WALK_IN_ENTITY_ID = "walk-in"
WALK_IN_ENTITY_NAME = "Walk-in Customer"


class LedgerPosting(db.Model):
    """
    Append-only record of money and material owed between the shop and an entity.

    SIGN CONVENTION (per entity):
    - cash balance     = sum(cash_owed_by_entity) - sum(cash_owed_to_entity)
    - material balance = sum(material_owed_by_entity) - sum(material_owed_to_entity)
    Positive means the entity owes the shop.

    invoice_ref is the explicit link a reversal uses to find every posting
    an invoice produced.
    """
    __tablename__ = "ledger_postings"
    __table_args__ = (
        db.Index("ix_ledger_postings_entity", "entity_kind", "entity_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_id = db.Column(db.String(32), nullable=False)
    entity_kind = db.Column(db.String(16), nullable=False)
    entity_name = db.Column(db.String(255), nullable=False)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    invoice_ref = db.Column(db.String(32), nullable=True, index=True)

    cash_owed_by_entity = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    cash_owed_to_entity = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    material_owed_by_entity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    material_owed_to_entity = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "entity_kind": self.entity_kind,
            "entity_name": self.entity_name,
            "timestamp": to_utc_z(self.timestamp),
            "description": self.description,
            "invoice_ref": self.invoice_ref,
            "cash_owed_by_entity": decimal_to_str(self.cash_owed_by_entity),
            "cash_owed_to_entity": decimal_to_str(self.cash_owed_to_entity),
            "material_owed_by_entity": decimal_to_str(self.material_owed_by_entity),
            "material_owed_to_entity": decimal_to_str(self.material_owed_to_entity),
        }
