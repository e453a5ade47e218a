from __future__ import annotations

from ..extensions import db
from ..money_utils import decimal_to_str
from ..time_utils import to_utc_z


class Invoice(db.Model):
    """
    Invoice produced by a sale or an order finalization.

    INVARIANTS (kept by the coordinators, never by callers):
    - grand_total = subtotal - discount
    - amount_paid = sum(payments.amount)
    - balance_due = grand_total - amount_paid (may go negative on overpayment)

    Lines and the rate snapshot are frozen at creation. Afterwards only the
    payment coordinator touches the row (append-only payments), and only
    the reversal coordinator deletes it.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_customer_created", "customer_id", "created_at"),
    )

    # Human-readable id (e.g., "INV-000042")
    id = db.Column(db.String(32), primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance_due = db.Column(db.Numeric(14, 2), nullable=False)

    # {"gold:21k": "200.00", "silver": "3.50", ...} at the moment of sale
    rate_snapshot = db.Column(db.JSON, nullable=False, default=dict)

    # Set when the invoice came from finalizing a custom order
    source_order_id = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy=True,
    )
    payments = db.relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id!r} grand_total={self.grand_total}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal": decimal_to_str(self.subtotal),
            "discount": decimal_to_str(self.discount),
            "grand_total": decimal_to_str(self.grand_total),
            "amount_paid": decimal_to_str(self.amount_paid),
            "balance_due": decimal_to_str(self.balance_due),
            "rate_snapshot": dict(self.rate_snapshot or {}),
            "source_order_id": self.source_order_id,
            "created_at": to_utc_z(self.created_at),
            "payment_history": [p.to_dict() for p in self.payments],
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    Immutable snapshot of one physical piece and its cost breakdown at sale time.

    Quantity is always 1: every piece has its own SKU and weight.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "position", name="uq_invoice_lines_invoice_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(32), db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    sku = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # Every ItemAttributes field, serialized; used to rebuild the piece on reversal
    item_snapshot = db.Column(db.JSON, nullable=False)

    metal_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    wastage_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    labor_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    diamond_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    gemstone_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    misc_charge = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    invoice = db.relationship("Invoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "item": dict(self.item_snapshot or {}),
            "metal_cost": decimal_to_str(self.metal_cost),
            "wastage_cost": decimal_to_str(self.wastage_cost),
            "labor_charge": decimal_to_str(self.labor_charge),
            "diamond_charge": decimal_to_str(self.diamond_charge),
            "gemstone_charge": decimal_to_str(self.gemstone_charge),
            "misc_charge": decimal_to_str(self.misc_charge),
            "line_total": decimal_to_str(self.line_total),
        }


class InvoicePayment(db.Model):
    """
    One entry of an invoice's payment history.

    Append-only: rows are never edited or removed individually; only a
    whole-invoice reversal deletes them (via the invoice cascade).
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.Index("ix_invoice_payments_invoice_timestamp", "invoice_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(32), db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    invoice = db.relationship("Invoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": decimal_to_str(self.amount),
            "timestamp": to_utc_z(self.timestamp),
            "note": self.note,
        }
