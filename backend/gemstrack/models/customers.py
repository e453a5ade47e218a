from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    Sales synthesize a Customer row inside the sale transaction when the
    cashier types a new name instead of picking an existing customer.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Artisan(db.Model):
    """Karigar (craftsman) who receives gold and cash to make pieces."""
    __tablename__ = "artisans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
