"""
Sales Service - cart to invoice, and its compensating reversal

WHY: A sale touches four stores at once (inventory, sold archive, invoices,
ledger) plus the invoice counter. Each coordinator here runs as one
transaction shaped read phase -> compute phase -> write phase -> commit, so
a failure anywhere leaves no partial sale behind.

Pricing faults abort the whole sale (ComputationFault); a line is never
silently priced at zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoiceLine, InvoicePayment, Order, Product, SoldProduct
from ..models.ledger import ENTITY_CUSTOMER
from ..models.orders import ORDER_STATUS_IN_PROGRESS
from ..money_utils import ZERO, quantize_money
from ..time_utils import utcnow
from ..validation import ComputationFault, ConflictError, ValidationError, require_finite, to_decimal
from .concurrency import begin_write_transaction, run_with_retry
from .customer_service import CustomerInfo, ledger_entity, read_customer, resolve_customer
from .document_service import SEQUENCE_INVOICE, allocate_next, read_sequence
from .inventory_service import archive_product, restore_product
from .ledger_service import append_posting, delete_postings_for_invoice
from .pricing_service import (
    CostBreakdown,
    ItemAttributes,
    RateTable,
    price_item,
    rate_key,
    validate_item,
)
from .settings_service import get_rate_table


@dataclass(frozen=True)
class PricedLine:
    item: ItemAttributes
    cost: CostBreakdown


# =============================================================================
# SHARED HELPERS (also used by order_service)
# =============================================================================

def coerce_items(raw_items: Any, *, require_sku: bool) -> list[ItemAttributes]:
    if not isinstance(raw_items, (list, tuple)):
        raise ValidationError("items must be a list")
    items = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, ItemAttributes):
            item = raw
        elif isinstance(raw, Mapping):
            item = ItemAttributes.from_dict(raw)
        else:
            raise ValidationError(f"items[{index}] must be an object")
        validate_item(item, require_sku=require_sku)
        items.append(item)
    return items


def require_positive_rates(items: Iterable[ItemAttributes], rates: RateTable) -> None:
    """Every material a rate-priced item uses must have a unit price above zero."""
    missing = set()
    for item in items:
        if item.manual_price_enabled:
            continue
        used = [(item.primary_material, item.purity_tier)]
        if item.secondary_material:
            used.append((item.secondary_material, item.secondary_purity_tier))
        for material, tier in used:
            rate = rates.rate_for(material, tier)
            if rate.is_finite() and rate <= 0:
                missing.add(rate_key(material, tier))
    if missing:
        raise ValidationError(
            "Rate must be greater than zero for every material in the cart",
            {"rates": sorted(missing)},
        )


def price_lines(items: Iterable[ItemAttributes], rates: RateTable) -> list[PricedLine]:
    """
    Price every item, aborting on the first computation fault.

    Raises:
        ComputationFault: a line came back non-finite
    """
    priced = []
    for item in items:
        cost = price_item(item, rates)
        if cost.fault:
            current_app.logger.error("Pricing fault for %s: %s", item.sku or item.name or "item", cost.fault)
            raise ComputationFault(
                "Price could not be computed",
                {"sku": item.sku, "name": item.name, "fault": cost.fault},
            )
        priced.append(PricedLine(item=item, cost=cost))
    return priced


def subtotal_of(priced: Iterable[PricedLine]) -> Decimal:
    return sum((line.cost.total_price for line in priced), ZERO)


def parse_discount(value: Any, field: str = "discount") -> Decimal:
    return quantize_money(require_finite(to_decimal(value, field), field))


def check_discount(discount: Decimal, subtotal: Decimal, field: str = "discount") -> None:
    if discount < 0 or discount > subtotal:
        raise ValidationError(
            f"{field} must be between 0 and the subtotal",
            {field: str(discount), "subtotal": str(subtotal)},
        )


def build_invoice(
    invoice_id: str,
    *,
    customer,
    customer_name: str,
    customer_phone: Optional[str],
    priced: list[PricedLine],
    discount: Decimal,
    rates: RateTable,
    source_order_id: Optional[str] = None,
    deposit: Decimal = ZERO,
    deposit_note: Optional[str] = None,
) -> Invoice:
    """
    Write phase: assemble and add an Invoice with its lines.

    A positive `deposit` is recorded as the first payment (order advances).
    """
    now = utcnow()
    subtotal = subtotal_of(priced)
    grand_total = subtotal - discount

    invoice = Invoice(
        id=invoice_id,
        customer_id=customer.id if customer is not None else None,
        customer_name=customer_name,
        customer_phone=customer_phone,
        subtotal=subtotal,
        discount=discount,
        grand_total=grand_total,
        amount_paid=ZERO,
        balance_due=grand_total,
        rate_snapshot=rates.to_snapshot(),
        source_order_id=source_order_id,
        created_at=now,
    )
    for position, line in enumerate(priced, start=1):
        cost = line.cost
        invoice.lines.append(InvoiceLine(
            position=position,
            sku=line.item.sku,
            name=line.item.name or line.item.sku,
            quantity=1,
            item_snapshot=line.item.to_dict(),
            metal_cost=cost.metal_cost,
            wastage_cost=cost.wastage_cost,
            labor_charge=cost.labor_charge,
            diamond_charge=cost.diamond_charge,
            gemstone_charge=cost.gemstone_charge,
            misc_charge=cost.misc_charge,
            line_total=cost.total_price,
        ))

    if deposit > 0:
        invoice.payments.append(InvoicePayment(amount=deposit, timestamp=now, note=deposit_note))
        invoice.amount_paid = deposit
        invoice.balance_due = grand_total - deposit

    db.session.add(invoice)
    return invoice


# =============================================================================
# SALE
# =============================================================================

def create_invoice(
    cart_items: Any,
    customer_info: Any = None,
    rate_overrides: Optional[Mapping[str, Any]] = None,
    discount: Any = 0,
    reissued_from: Optional[str] = None,
) -> Invoice:
    """
    Sell a cart.

    Args:
        cart_items: ItemAttributes or item dicts, each with a SKU still in inventory
        customer_info: CustomerInfo or {"customer_id"} / {"name", "phone"}; empty = walk-in
        rate_overrides: per-sale unit prices, e.g. {"gold:22k": "210"}
        discount: flat amount off the subtotal
        reissued_from: id of a reversed invoice whose archived pieces may be re-sold
            (the "edit this sale" flow). Archived pieces re-sold here take the
            cart's attributes; those left out of the cart go back to inventory.

    Raises:
        ValidationError: empty cart, unpriced material, discount out of range
        ConflictError: a piece is no longer available, customer vanished
        ComputationFault: a line priced to a non-finite value
    """
    items = coerce_items(cart_items, require_sku=True)
    if not items:
        raise ValidationError("Cart is empty")
    skus = [item.sku for item in items]
    if len(set(skus)) != len(skus):
        raise ValidationError("Cart contains the same SKU more than once")

    info = customer_info if isinstance(customer_info, CustomerInfo) else CustomerInfo.from_dict(customer_info)
    discount = parse_discount(discount)

    # Local price pass for the preconditions; repeated inside the transaction
    local_rates = get_rate_table().with_overrides(rate_overrides)
    require_positive_rates(items, local_rates)
    check_discount(discount, subtotal_of(price_lines(items, local_rates)))

    def _op():
        begin_write_transaction()

        # ---- Read phase
        rates = get_rate_table().with_overrides(rate_overrides)
        counter = read_sequence(SEQUENCE_INVOICE)
        customer = read_customer(info)

        live: dict[str, Product | None] = {}
        reissued: dict[str, SoldProduct] = {}
        unavailable = []
        for sku in skus:
            product = db.session.get(Product, sku)
            live[sku] = product
            if product is not None:
                continue
            sold = db.session.get(SoldProduct, sku) if reissued_from else None
            if sold is not None and sold.invoice_id == reissued_from:
                reissued[sku] = sold
            else:
                unavailable.append(sku)
        if unavailable:
            raise ConflictError("item no longer available", {"skus": unavailable})

        # Pieces of the reversed invoice left out of the edited cart
        leftovers: list[SoldProduct] = []
        if reissued_from:
            if db.session.get(Invoice, reissued_from) is not None:
                raise ConflictError(f"Invoice {reissued_from} has not been reversed")
            leftovers = (
                db.session.query(SoldProduct)
                .filter(SoldProduct.invoice_id == reissued_from, SoldProduct.sku.notin_(skus))
                .order_by(SoldProduct.sku.asc())
                .all()
            )
            for row in leftovers:
                if db.session.get(Product, row.sku) is not None:
                    raise ConflictError(f"SKU {row.sku} is already in inventory", {"sku": row.sku})

        # ---- Compute phase
        require_positive_rates(items, rates)
        priced = price_lines(items, rates)
        check_discount(discount, subtotal_of(priced))

        # ---- Write phase
        customer = resolve_customer(info, customer)
        entity_id, entity_name = ledger_entity(customer)
        invoice_id = allocate_next(counter, current_app.config.get("INVOICE_PREFIX", "INV"))

        for line in priced:
            sku = line.item.sku
            archive_product(live[sku], line.item, invoice_id, existing=reissued.get(sku))
        for row in leftovers:
            restore_product(ItemAttributes.from_row(row), row)

        invoice = build_invoice(
            invoice_id,
            customer=customer,
            customer_name=entity_name,
            customer_phone=customer.phone if customer is not None else info.phone,
            priced=priced,
            discount=discount,
            rates=rates,
        )

        append_posting(
            entity_id=entity_id,
            entity_kind=ENTITY_CUSTOMER,
            entity_name=entity_name,
            description=f"Sale {invoice_id}",
            invoice_ref=invoice_id,
            cash_owed_by_entity=invoice.grand_total,
        )

        db.session.commit()
        current_app.logger.info(
            "Invoice %s created for %s: %d line(s), grand total %s, %d piece(s) returned to inventory",
            invoice_id, entity_name, len(priced), invoice.grand_total, len(leftovers),
        )
        return invoice

    return run_with_retry(_op)


def get_invoice(invoice_id: str) -> Invoice | None:
    return db.session.get(Invoice, invoice_id)


# =============================================================================
# REVERSAL
# =============================================================================

def reverse_sale(invoice_id: str, restore_inventory: bool = True) -> dict | None:
    """
    Undo a sale or an order finalization.

    - Sale invoices: pieces go back into inventory from their frozen line
      snapshots and leave the sold archive. With restore_inventory=False
      (edit flow) both stores are left alone so the caller can re-sell the
      pieces with create_invoice(..., reissued_from=invoice_id),
      which returns any piece dropped from the edited cart to inventory.
    - Order invoices: the source order reopens as InProgress.
    - Every ledger posting tagged with the invoice is deleted, then the
      invoice itself (its lines and payments cascade).

    Returns:
        Summary dict, or None when the invoice does not exist (no-op).

    Raises:
        ConflictError: a piece to restore is already back in inventory
    """
    def _op():
        begin_write_transaction()

        # ---- Read phase
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            db.session.rollback()
            current_app.logger.info("Reversal of %s skipped: invoice not found", invoice_id)
            return None

        lines = list(invoice.lines)
        order = db.session.get(Order, invoice.source_order_id) if invoice.source_order_id else None

        archived: dict[str, SoldProduct | None] = {}
        if restore_inventory and invoice.source_order_id is None:
            for line in lines:
                if db.session.get(Product, line.sku) is not None:
                    raise ConflictError(f"SKU {line.sku} is already in inventory", {"sku": line.sku})
                archived[line.sku] = db.session.get(SoldProduct, line.sku)

        # ---- Write phase
        restored = []
        for line in lines:
            if line.sku in archived:
                restore_product(ItemAttributes.from_dict(line.item_snapshot), archived[line.sku])
                restored.append(line.sku)

        if order is not None:
            order.status = ORDER_STATUS_IN_PROGRESS
            order.invoice_id = None

        postings_deleted = delete_postings_for_invoice(invoice_id)
        db.session.delete(invoice)

        db.session.commit()
        current_app.logger.info(
            "Invoice %s reversed: %d piece(s) restored, %d posting(s) deleted",
            invoice_id, len(restored), postings_deleted,
        )
        return {
            "invoice_id": invoice_id,
            "restored_skus": restored,
            "postings_deleted": postings_deleted,
            "reopened_order_id": order.id if order is not None else None,
        }

    return run_with_retry(_op)
