# Overview: Service-layer operations for ledger; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Artisan, Customer, LedgerPosting
from ..models.ledger import (
    ENTITY_ARTISAN,
    ENTITY_CUSTOMER,
    ENTITY_KINDS,
    WALK_IN_ENTITY_ID,
    WALK_IN_ENTITY_NAME,
)
from ..money_utils import ZERO, quantize_money, quantize_weight
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, optional_str, to_decimal
from .concurrency import begin_write_transaction, run_with_retry
"""
GemsTrack Ledger Invariants (authoritative)

- Append-only per-entity postings (customers and artisans).
- Postings are written inside the same DB transaction as the business
  operation they record; this module never commits on behalf of a caller
  except in record_manual_entry, which is its own operation.
- Balances are derived by summing postings, never stored.
- The only delete path is delete_postings_for_invoice, used by sale reversal.
"""


@dataclass(frozen=True)
class Balance:
    cash: Decimal
    material: Decimal

    def to_dict(self) -> dict:
        return {"cash": str(self.cash), "material": str(self.material)}


def _check_kind(entity_kind: str) -> None:
    if entity_kind not in ENTITY_KINDS:
        raise ValidationError(f"Invalid entity kind: {entity_kind}. Must be one of {list(ENTITY_KINDS)}")


def append_posting(
    *,
    entity_id: str,
    entity_kind: str,
    entity_name: str,
    description: str,
    invoice_ref: Optional[str] = None,
    cash_owed_by_entity: Decimal = ZERO,
    cash_owed_to_entity: Decimal = ZERO,
    material_owed_by_entity: Decimal = ZERO,
    material_owed_to_entity: Decimal = ZERO,
    timestamp: Optional[datetime] = None,
) -> LedgerPosting:
    """
    Append-only ledger posting.

    - No domain logic here.
    - No commit: the caller's transaction owns it.
    """
    _check_kind(entity_kind)
    posting = LedgerPosting(
        entity_id=str(entity_id),
        entity_kind=entity_kind,
        entity_name=entity_name,
        timestamp=timestamp or utcnow(),
        description=description,
        invoice_ref=invoice_ref,
        cash_owed_by_entity=cash_owed_by_entity,
        cash_owed_to_entity=cash_owed_to_entity,
        material_owed_by_entity=material_owed_by_entity,
        material_owed_to_entity=material_owed_to_entity,
    )
    db.session.add(posting)
    return posting


def delete_postings_for_invoice(invoice_id: str) -> int:
    """
    Drop every posting an invoice produced (reversal only).

    Matching is by the invoice_ref column, never by description text.
    No commit: the reversal transaction owns it.
    """
    return (
        db.session.query(LedgerPosting)
        .filter_by(invoice_ref=invoice_id)
        .delete(synchronize_session="fetch")
    )


def get_balance(entity_id, entity_kind: str = ENTITY_CUSTOMER) -> Balance:
    """Running balance; positive means the entity owes the shop."""
    _check_kind(entity_kind)
    row = (
        db.session.query(
            func.coalesce(func.sum(LedgerPosting.cash_owed_by_entity), 0),
            func.coalesce(func.sum(LedgerPosting.cash_owed_to_entity), 0),
            func.coalesce(func.sum(LedgerPosting.material_owed_by_entity), 0),
            func.coalesce(func.sum(LedgerPosting.material_owed_to_entity), 0),
        )
        .filter_by(entity_id=str(entity_id), entity_kind=entity_kind)
        .one()
    )
    cash_by, cash_to, material_by, material_to = (Decimal(str(v)) for v in row)
    return Balance(
        cash=quantize_money(cash_by - cash_to),
        material=quantize_weight(material_by - material_to),
    )


def list_postings(entity_id, entity_kind: str = ENTITY_CUSTOMER) -> list[LedgerPosting]:
    """Statement for one entity, oldest first."""
    _check_kind(entity_kind)
    return (
        db.session.query(LedgerPosting)
        .filter_by(entity_id=str(entity_id), entity_kind=entity_kind)
        .order_by(LedgerPosting.timestamp, LedgerPosting.id)
        .all()
    )


def account_summaries() -> list[dict]:
    """
    Every entity with a non-zero cash or material balance, sorted by name.

    Positive balances are receivable (they owe the shop), negative payable.
    """
    rows = (
        db.session.query(
            LedgerPosting.entity_kind,
            LedgerPosting.entity_id,
            func.max(LedgerPosting.entity_name),
            func.coalesce(func.sum(LedgerPosting.cash_owed_by_entity), 0),
            func.coalesce(func.sum(LedgerPosting.cash_owed_to_entity), 0),
            func.coalesce(func.sum(LedgerPosting.material_owed_by_entity), 0),
            func.coalesce(func.sum(LedgerPosting.material_owed_to_entity), 0),
        )
        .group_by(LedgerPosting.entity_kind, LedgerPosting.entity_id)
        .all()
    )

    summaries = []
    for kind, entity_id, name, cash_by, cash_to, material_by, material_to in rows:
        cash = quantize_money(Decimal(str(cash_by)) - Decimal(str(cash_to)))
        material = quantize_weight(Decimal(str(material_by)) - Decimal(str(material_to)))
        if cash == 0 and material == 0:
            continue
        summaries.append({
            "entity_kind": kind,
            "entity_id": entity_id,
            "entity_name": name,
            "cash_balance": str(cash),
            "material_balance": str(material),
        })

    summaries.sort(key=lambda s: (s["entity_name"] or "").lower())
    return summaries


def resolve_entity_name(entity_id, entity_kind: str) -> str:
    """Current display name for a ledger entity; raises ConflictError if it is gone."""
    _check_kind(entity_kind)
    if entity_kind == ENTITY_CUSTOMER and str(entity_id) == WALK_IN_ENTITY_ID:
        return WALK_IN_ENTITY_NAME

    model = Customer if entity_kind == ENTITY_CUSTOMER else Artisan
    try:
        pk = int(entity_id)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {entity_kind} id: {entity_id}")
    row = db.session.get(model, pk)
    if row is None:
        raise ConflictError(f"{entity_kind.capitalize()} {entity_id} not found")
    return row.name


def record_manual_entry(
    *,
    entity_id,
    entity_kind: str,
    description: str,
    cash_owed_by_entity=None,
    cash_owed_to_entity=None,
    material_owed_by_entity=None,
    material_owed_to_entity=None,
) -> LedgerPosting:
    """
    Hand-keyed posting, e.g. gold handed to an artisan or cash paid to one.

    At least one amount must be positive; amounts cannot be negative.
    """
    _check_kind(entity_kind)
    description = optional_str(description)
    if not description:
        raise ValidationError("description is required")

    amounts = {
        "cash_owed_by_entity": to_decimal(cash_owed_by_entity, "cash_owed_by_entity"),
        "cash_owed_to_entity": to_decimal(cash_owed_to_entity, "cash_owed_to_entity"),
        "material_owed_by_entity": to_decimal(material_owed_by_entity, "material_owed_by_entity"),
        "material_owed_to_entity": to_decimal(material_owed_to_entity, "material_owed_to_entity"),
    }
    for name, value in amounts.items():
        if not value.is_finite():
            raise ValidationError(f"{name} must be a finite number")
    if not any(value > 0 for value in amounts.values()):
        raise ValidationError("At least one amount must be positive")

    def _op():
        begin_write_transaction()
        entity_name = resolve_entity_name(entity_id, entity_kind)
        posting = append_posting(
            entity_id=str(entity_id),
            entity_kind=entity_kind,
            entity_name=entity_name,
            description=description,
            **amounts,
        )
        db.session.commit()
        current_app.logger.info(
            "Manual ledger entry %s for %s %s", posting.id, entity_kind, entity_id
        )
        return posting

    return run_with_retry(_op)


__all__ = [
    "Balance",
    "ENTITY_ARTISAN",
    "ENTITY_CUSTOMER",
    "append_posting",
    "delete_postings_for_invoice",
    "get_balance",
    "list_postings",
    "account_summaries",
    "resolve_entity_name",
    "record_manual_entry",
]
