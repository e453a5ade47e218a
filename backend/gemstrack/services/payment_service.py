# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Jewellery is often paid for in instalments. Each payment is appended
to the invoice's history and mirrored as a ledger posting in the same
transaction.

DESIGN PRINCIPLES:
- Append-only history: payments are never edited or removed individually
- amount_paid is always re-summed from the history, never incremented
- balance_due is not clamped; a negative balance means overpayment
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoicePayment
from ..models.ledger import ENTITY_CUSTOMER, WALK_IN_ENTITY_ID, WALK_IN_ENTITY_NAME
from ..money_utils import ZERO, quantize_money
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, optional_str, require_finite, to_decimal
from .concurrency import begin_write_transaction, run_with_retry
from .ledger_service import append_posting


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERPAID = "OVERPAID"


def payment_status(grand_total: Decimal, amount_paid: Decimal) -> str:
    """
    - UNPAID: nothing paid on a non-zero invoice
    - PARTIAL: 0 < paid < total
    - PAID: paid == total
    - OVERPAID: paid > total
    """
    if amount_paid == 0 and grand_total > 0:
        return PAYMENT_STATUS_UNPAID
    if amount_paid < grand_total:
        return PAYMENT_STATUS_PARTIAL
    if amount_paid == grand_total:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_OVERPAID


def _invoice_entity(invoice: Invoice) -> tuple[str, str]:
    if invoice.customer_id is None:
        return WALK_IN_ENTITY_ID, WALK_IN_ENTITY_NAME
    return str(invoice.customer_id), invoice.customer_name


def record_payment(invoice_id: str, amount: Any, note: Optional[str] = None) -> Invoice:
    """
    Record a partial or full payment against an invoice.

    Raises:
        ValidationError: amount is not a positive finite number
        ConflictError: the invoice does not exist (e.g. reversed meanwhile)
    """
    amount = to_decimal(amount, "amount")
    require_finite(amount, "amount")
    amount = quantize_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive", {"amount": str(amount)})
    note = optional_str(note)

    def _op():
        begin_write_transaction()

        # ---- Read phase
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            raise ConflictError(f"Invoice {invoice_id} not found")

        # ---- Write phase
        invoice.payments.append(InvoicePayment(amount=amount, timestamp=utcnow(), note=note))
        amount_paid = sum((Decimal(p.amount) for p in invoice.payments), ZERO)
        invoice.amount_paid = amount_paid
        invoice.balance_due = Decimal(invoice.grand_total) - amount_paid

        entity_id, entity_name = _invoice_entity(invoice)
        append_posting(
            entity_id=entity_id,
            entity_kind=ENTITY_CUSTOMER,
            entity_name=entity_name,
            description=f"Payment for {invoice_id}",
            invoice_ref=invoice_id,
            cash_owed_to_entity=amount,
        )

        db.session.commit()
        current_app.logger.info(
            "Payment of %s recorded on %s, balance due %s", amount, invoice_id, invoice.balance_due
        )
        return invoice

    return run_with_retry(_op)


def get_payment_summary(invoice_id: str) -> dict | None:
    """
    Payment summary for an invoice.

    Returns:
        - grand_total, amount_paid, balance_due
        - payment_status: UNPAID, PARTIAL, PAID, OVERPAID
        - payments: the payment history, oldest first
        None if the invoice does not exist.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        return None

    return {
        "invoice_id": invoice.id,
        "grand_total": str(invoice.grand_total),
        "amount_paid": str(invoice.amount_paid),
        "balance_due": str(invoice.balance_due),
        "payment_status": payment_status(Decimal(invoice.grand_total), Decimal(invoice.amount_paid)),
        "payments": [p.to_dict() for p in invoice.payments],
    }
