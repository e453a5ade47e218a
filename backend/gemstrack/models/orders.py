from __future__ import annotations

from ..extensions import db
from ..money_utils import decimal_to_str
from ..time_utils import to_utc_z


ORDER_STATUS_PENDING = "Pending"
ORDER_STATUS_IN_PROGRESS = "InProgress"
ORDER_STATUS_COMPLETED = "Completed"
ORDER_STATUS_CANCELLED = "Cancelled"

ORDER_STATUSES = [
    ORDER_STATUS_PENDING,
    ORDER_STATUS_IN_PROGRESS,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
]


class Order(db.Model):
    """
    Provisional custom order, quoted at the rates of the day it was taken.

    LIFECYCLE: Pending -> InProgress -> Completed (only via finalization)
               Pending/InProgress -> Cancelled
    The rate snapshot is frozen at creation; finalization prices the
    re-measured pieces against it, never against live rates.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    # Human-readable id (e.g., "ORD-000007")
    id = db.Column(db.String(32), primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Deposit taken when the order was placed
    advance_cash = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    advance_material_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    advance_material_description = db.Column(db.String(255), nullable=True)

    estimated_subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    rate_snapshot = db.Column(db.JSON, nullable=False, default=dict)

    invoice_id = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "advance_cash": decimal_to_str(self.advance_cash),
            "advance_material_value": decimal_to_str(self.advance_material_value),
            "advance_material_description": self.advance_material_description,
            "estimated_subtotal": decimal_to_str(self.estimated_subtotal),
            "rate_snapshot": dict(self.rate_snapshot or {}),
            "invoice_id": self.invoice_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "lines": [line.to_dict() for line in self.lines],
            "version_id": self.version_id,
        }


class OrderLine(db.Model):
    """One piece to be made, with its estimate and, once finalized, its as-built price."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(32), db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)

    item_snapshot = db.Column(db.JSON, nullable=False)
    estimated_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    final_item_snapshot = db.Column(db.JSON, nullable=True)
    final_total = db.Column(db.Numeric(14, 2), nullable=True)

    order = db.relationship("Order", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "position": self.position,
            "description": self.description,
            "item": dict(self.item_snapshot or {}),
            "estimated_total": decimal_to_str(self.estimated_total),
            "final_item": dict(self.final_item_snapshot) if self.final_item_snapshot else None,
            "final_total": decimal_to_str(self.final_total),
        }
