# Overview: Service-layer operations for custom orders; quoting, status changes and finalization.

"""
Custom Order Service

WHY: Made-to-order pieces are quoted at the day's rates, then weighed and
priced for real when the artisan delivers. The quote's rate snapshot is
frozen at order time and finalization prices the as-built measurements
against it, never against live rates.

LIFECYCLE:
    Pending -> InProgress -> Completed   (Completed only via finalize_order)
    Pending / InProgress -> Cancelled
Open orders (Pending, InProgress) can have their lines and advance edited.
Completed and Cancelled are terminal. Reversing the finalized invoice
(sales_service.reverse_sale) reopens the order as InProgress.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import current_app

from ..extensions import db
from ..models import Customer, Invoice, Order, OrderLine
from ..models.ledger import ENTITY_CUSTOMER
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_IN_PROGRESS,
    ORDER_STATUS_PENDING,
    ORDER_STATUSES,
)
from ..money_utils import quantize_money
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, optional_str, require_finite, to_decimal
from .concurrency import begin_write_transaction, run_with_retry
from .customer_service import CustomerInfo, ledger_entity, read_customer, resolve_customer
from .document_service import SEQUENCE_INVOICE, SEQUENCE_ORDER, allocate_next, read_sequence
from .ledger_service import append_posting
from .pricing_service import ItemAttributes, RateTable, validate_item
from .sales_service import (
    build_invoice,
    check_discount,
    parse_discount,
    price_lines,
    require_positive_rates,
    subtotal_of,
)
from .settings_service import get_rate_table


TERMINAL_STATUSES = frozenset({ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED})

# Statuses a caller may set directly; Completed is reserved for finalize_order
SETTABLE_STATUSES = [ORDER_STATUS_PENDING, ORDER_STATUS_IN_PROGRESS, ORDER_STATUS_CANCELLED]


def _parse_order_lines(lines: Any) -> list[tuple[str, ItemAttributes]]:
    if not isinstance(lines, (list, tuple)) or not lines:
        raise ValidationError("An order needs at least one line")
    parsed = []
    for index, raw in enumerate(lines):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"lines[{index}] must be an object")
        item = ItemAttributes.from_dict(raw)
        validate_item(item)
        description = optional_str(raw.get("description")) or item.name
        if not description:
            raise ValidationError(f"lines[{index}].description is required")
        parsed.append((description, item.with_updates(name=item.name or description)))
    return parsed


def _parse_amount(value: Any, field: str):
    return quantize_money(require_finite(to_decimal(value, field), field))


def create_order(
    lines: Any,
    customer_info: Any = None,
    rate_overrides: Optional[Mapping[str, Any]] = None,
    advance_cash: Any = 0,
    advance_material_value: Any = 0,
    advance_material_description: Optional[str] = None,
) -> Order:
    """
    Take a custom order and quote it.

    Each line is priced against the live rates (plus overrides) and the
    rate table is frozen into the order. No ledger posting is made here;
    the advance is settled against the final invoice.
    """
    parsed = _parse_order_lines(lines)
    items = [item for _, item in parsed]
    info = customer_info if isinstance(customer_info, CustomerInfo) else CustomerInfo.from_dict(customer_info)
    advance_cash = _parse_amount(advance_cash, "advance_cash")
    advance_material_value = _parse_amount(advance_material_value, "advance_material_value")
    advance_material_description = optional_str(advance_material_description)

    require_positive_rates(items, get_rate_table().with_overrides(rate_overrides))

    def _op():
        begin_write_transaction()

        # ---- Read phase
        rates = get_rate_table().with_overrides(rate_overrides)
        counter = read_sequence(SEQUENCE_ORDER)
        customer = read_customer(info)

        # ---- Compute phase
        priced = price_lines(items, rates)

        # ---- Write phase
        customer = resolve_customer(info, customer)
        _, customer_name = ledger_entity(customer)
        order_id = allocate_next(counter, current_app.config.get("ORDER_PREFIX", "ORD"))

        order = Order(
            id=order_id,
            status=ORDER_STATUS_PENDING,
            customer_id=customer.id if customer is not None else None,
            customer_name=customer_name,
            customer_phone=customer.phone if customer is not None else info.phone,
            advance_cash=advance_cash,
            advance_material_value=advance_material_value,
            advance_material_description=advance_material_description,
            estimated_subtotal=subtotal_of(priced),
            rate_snapshot=rates.to_snapshot(),
            created_at=utcnow(),
        )
        for position, ((description, _), line) in enumerate(zip(parsed, priced), start=1):
            order.lines.append(OrderLine(
                position=position,
                description=description,
                item_snapshot=line.item.to_dict(),
                estimated_total=line.cost.total_price,
            ))
        db.session.add(order)

        db.session.commit()
        current_app.logger.info(
            "Order %s created for %s: %d line(s), estimate %s",
            order_id, customer_name, len(priced), order.estimated_subtotal,
        )
        return order

    return run_with_retry(_op)


def get_order(order_id: str) -> Order | None:
    return db.session.get(Order, order_id)


def list_orders(status: Optional[str] = None) -> list[Order]:
    query = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {ORDER_STATUSES}")
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_order_status(order_id: str, status: Any) -> Order:
    """
    Move an open order between Pending, InProgress and Cancelled.

    Raises:
        ValidationError: unknown status, or Completed (use finalize_order)
        ConflictError: order missing or already Completed/Cancelled
    """
    if status not in SETTABLE_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of {SETTABLE_STATUSES}",
            {"hint": "Completed is set by finalizing the order"} if status == ORDER_STATUS_COMPLETED else None,
        )

    def _op():
        begin_write_transaction()
        order = db.session.get(Order, order_id)
        if order is None:
            raise ConflictError(f"Order {order_id} not found")
        if order.status in TERMINAL_STATUSES:
            raise ConflictError(f"Order {order_id} is {order.status}", {"status": order.status})

        previous = order.status
        order.status = status
        db.session.commit()
        current_app.logger.info("Order %s status %s -> %s", order_id, previous, status)
        return order

    return run_with_retry(_op)


def update_order(
    order_id: str,
    lines: Any = None,
    advance_cash: Any = None,
    advance_material_value: Any = None,
    advance_material_description: Any = None,
) -> Order:
    """
    Edit an open order before it is finalized.

    Only the arguments that are not None are changed. New lines replace the
    old ones and are re-quoted against the order's frozen rate snapshot, so
    a rate change since the order was taken has no effect on the estimate.

    Raises:
        ValidationError: bad lines or amounts, a line's material has no
            positive rate in the snapshot
        ConflictError: order missing or already Completed/Cancelled
    """
    parsed = _parse_order_lines(lines) if lines is not None else None
    if advance_cash is not None:
        advance_cash = _parse_amount(advance_cash, "advance_cash")
    if advance_material_value is not None:
        advance_material_value = _parse_amount(advance_material_value, "advance_material_value")

    def _op():
        begin_write_transaction()

        # ---- Read phase
        order = db.session.get(Order, order_id)
        if order is None:
            raise ConflictError(f"Order {order_id} not found")
        if order.status in TERMINAL_STATUSES:
            raise ConflictError(f"Order {order_id} is {order.status}", {"status": order.status})

        # ---- Compute phase
        priced = None
        if parsed is not None:
            rates = RateTable.from_snapshot(order.rate_snapshot)
            items = [item for _, item in parsed]
            require_positive_rates(items, rates)
            priced = price_lines(items, rates)

        # ---- Write phase
        if priced is not None:
            order.lines.clear()
            # Old rows must be gone before new ones reuse their positions
            db.session.flush()
            for position, ((description, _), line) in enumerate(zip(parsed, priced), start=1):
                order.lines.append(OrderLine(
                    position=position,
                    description=description,
                    item_snapshot=line.item.to_dict(),
                    estimated_total=line.cost.total_price,
                ))
            order.estimated_subtotal = subtotal_of(priced)
        if advance_cash is not None:
            order.advance_cash = advance_cash
        if advance_material_value is not None:
            order.advance_material_value = advance_material_value
        if advance_material_description is not None:
            order.advance_material_description = optional_str(advance_material_description)

        db.session.commit()
        current_app.logger.info("Order %s updated: estimate %s", order_id, order.estimated_subtotal)
        return order

    return run_with_retry(_op)


def _parse_measurements(final_measurements: Any) -> list[dict]:
    if final_measurements is None:
        return []
    if not isinstance(final_measurements, (list, tuple)):
        raise ValidationError("final_measurements must be a list")
    parsed = []
    for index, raw in enumerate(final_measurements):
        if raw is None:
            parsed.append({})
        elif isinstance(raw, Mapping):
            # Parse now so bad numbers fail before any transaction opens
            ItemAttributes.from_dict(raw)
            parsed.append(dict(raw))
        else:
            raise ValidationError(f"final_measurements[{index}] must be an object")
    return parsed


def finalize_order(order_id: str, final_measurements: Any = None, extra_discount: Any = 0) -> Invoice:
    """
    Turn an order into its final invoice.

    Args:
        final_measurements: one entry per order line, in line order; each is a
            partial item dict (as-built weights and charges) laid over the
            estimate. An empty list or a None entry keeps the estimate.
        extra_discount: flat amount off the final subtotal

    The advance (cash + material value) becomes the invoice's first payment
    and the ledger gets a single posting for the outstanding difference.
    No inventory or sold-archive rows are touched.

    Raises:
        ValidationError: measurement count mismatch, discount out of range,
            a line's material has no positive rate in the frozen snapshot
        ConflictError: order missing, Completed or Cancelled
        ComputationFault: a line priced to a non-finite value
    """
    measurements = _parse_measurements(final_measurements)
    extra_discount = parse_discount(extra_discount, "extra_discount")

    def _op():
        begin_write_transaction()

        # ---- Read phase
        order = db.session.get(Order, order_id)
        if order is None:
            raise ConflictError(f"Order {order_id} not found")
        if order.status in TERMINAL_STATUSES:
            raise ConflictError(f"Order {order_id} is already {order.status}", {"status": order.status})
        lines = list(order.lines)
        customer = db.session.get(Customer, order.customer_id) if order.customer_id is not None else None
        counter = read_sequence(SEQUENCE_INVOICE)

        if measurements and len(measurements) != len(lines):
            raise ValidationError(
                "final_measurements must have one entry per order line",
                {"lines": len(lines), "measurements": len(measurements)},
            )

        # ---- Compute phase
        rates = RateTable.from_snapshot(order.rate_snapshot)
        items = []
        for index, line in enumerate(lines):
            merged = dict(line.item_snapshot or {})
            if measurements:
                merged.update(measurements[index])
            item = ItemAttributes.from_dict(merged)
            validate_item(item)
            items.append(item.with_updates(name=item.name or line.description))

        require_positive_rates(items, rates)
        priced = price_lines(items, rates)
        subtotal = subtotal_of(priced)
        check_discount(extra_discount, subtotal, "extra_discount")
        deposit = quantize_money(order.advance_cash + order.advance_material_value)

        # ---- Write phase
        entity_id, entity_name = ledger_entity(customer)
        invoice_id = allocate_next(counter, current_app.config.get("INVOICE_PREFIX", "INV"))

        invoice = build_invoice(
            invoice_id,
            customer=customer,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            priced=priced,
            discount=extra_discount,
            rates=rates,
            source_order_id=order.id,
            deposit=deposit,
            deposit_note=f"Advance from order {order.id}",
        )

        for line, priced_line in zip(lines, priced):
            line.final_item_snapshot = priced_line.item.to_dict()
            line.final_total = priced_line.cost.total_price

        order.status = ORDER_STATUS_COMPLETED
        order.invoice_id = invoice_id

        append_posting(
            entity_id=entity_id,
            entity_kind=ENTITY_CUSTOMER,
            entity_name=entity_name,
            description=f"Order {order.id} finalized as {invoice_id}",
            invoice_ref=invoice_id,
            cash_owed_by_entity=invoice.grand_total,
            cash_owed_to_entity=invoice.amount_paid,
        )

        db.session.commit()
        current_app.logger.info(
            "Order %s finalized as %s: grand total %s, advance %s",
            order_id, invoice_id, invoice.grand_total, deposit,
        )
        return invoice

    return run_with_retry(_op)
