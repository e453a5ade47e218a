"""
Sale and reversal coordinator tests.

Covers invoice arithmetic, atomicity when a cart SKU is gone, customer
resolution, and the reversal/edit flows.
"""

from decimal import Decimal

import pytest

from gemstrack.models import Customer, Invoice, InvoicePayment, LedgerPosting, Product
from gemstrack.services import document_service, inventory_service, ledger_service, payment_service, sales_service
from gemstrack.services.pricing_service import ItemAttributes
from gemstrack.validation import ComputationFault, ConflictError, ValidationError


def cart_for(*skus):
    return [inventory_service.item_for_cart(sku) for sku in skus]


def test_sale_worked_example(ring_sku):
    invoice = sales_service.create_invoice(cart_for(ring_sku), None, discount="200")

    assert invoice.id == "INV-000001"
    assert invoice.subtotal == Decimal("2700.00")
    assert invoice.discount == Decimal("200.00")
    assert invoice.grand_total == Decimal("2500.00")
    assert invoice.amount_paid == 0
    assert invoice.balance_due == Decimal("2500.00")
    assert invoice.payments == []

    line = invoice.lines[0]
    assert line.sku == ring_sku
    assert line.metal_cost == Decimal("2000.00")
    assert line.wastage_cost == Decimal("200.00")
    assert line.line_total == Decimal("2700.00")
    assert line.item_snapshot["purity_tier"] == "21k"
    assert Decimal(invoice.rate_snapshot["gold:21k"]) == Decimal("200")


def test_sale_moves_piece_to_sold_archive(ring_sku):
    invoice = sales_service.create_invoice(cart_for(ring_sku))

    assert inventory_service.get_product(ring_sku) is None
    sold = inventory_service.get_sold_product(ring_sku)
    assert sold is not None
    assert sold.invoice_id == invoice.id
    assert sold.gross_weight_grams == Decimal("10.000")


def test_walk_in_sale_posts_to_walk_in_entity(ring_sku):
    invoice = sales_service.create_invoice(cart_for(ring_sku), None, discount="200")

    assert invoice.customer_id is None
    assert invoice.customer_name == "Walk-in Customer"

    postings = ledger_service.list_postings("walk-in")
    assert len(postings) == 1
    assert postings[0].invoice_ref == invoice.id
    assert postings[0].cash_owed_by_entity == Decimal("2500.00")
    assert ledger_service.get_balance("walk-in").cash == Decimal("2500.00")


def test_new_customer_is_created_inside_the_sale(ring_sku, db_session):
    invoice = sales_service.create_invoice(cart_for(ring_sku), {"name": "Ayesha Khan", "phone": "0300-1234567"})

    customer = db_session.query(Customer).one()
    assert customer.name == "Ayesha Khan"
    assert customer.phone == "0300-1234567"
    assert invoice.customer_id == customer.id
    assert ledger_service.get_balance(customer.id).cash == Decimal("2700.00")


def test_existing_customer_is_reused(ring_sku, db_session):
    customer = Customer(name="Bilal", phone="0311")
    db_session.add(customer)
    db_session.commit()

    invoice = sales_service.create_invoice(cart_for(ring_sku), {"customer_id": customer.id})

    assert db_session.query(Customer).count() == 1
    assert invoice.customer_id == customer.id
    assert invoice.customer_name == "Bilal"


def test_unknown_customer_aborts_sale(ring_sku, db_session):
    with pytest.raises(ConflictError):
        sales_service.create_invoice(cart_for(ring_sku), {"customer_id": 999})

    assert inventory_service.get_product(ring_sku) is not None
    assert db_session.query(Invoice).count() == 0


def test_sale_aborts_atomically_when_a_piece_is_gone(make_product, db_session):
    first = make_product()
    second = make_product()
    stale_cart = cart_for(first, second)

    sales_service.create_invoice(cart_for(first))
    postings_before = db_session.query(LedgerPosting).count()

    with pytest.raises(ConflictError) as excinfo:
        sales_service.create_invoice(stale_cart)

    assert excinfo.value.message == "item no longer available"
    assert excinfo.value.details["skus"] == [first]
    assert inventory_service.get_product(second) is not None
    assert inventory_service.get_sold_product(second) is None
    assert db_session.query(Invoice).count() == 1
    assert db_session.query(LedgerPosting).count() == postings_before
    assert document_service.peek_sequence("invoice") == 1


def test_invoice_ids_are_sequential(make_product):
    ids = [sales_service.create_invoice(cart_for(make_product())).id for _ in range(3)]
    assert ids == ["INV-000001", "INV-000002", "INV-000003"]


def test_rate_overrides_apply_to_this_sale_only(ring_sku):
    invoice = sales_service.create_invoice(cart_for(ring_sku), rate_overrides={"gold:21k": "250"})

    assert invoice.subtotal == Decimal("3250.00")
    assert Decimal(invoice.rate_snapshot["gold:21k"]) == Decimal("250")
    assert Decimal(invoice.rate_snapshot["gold:22k"]) == Decimal("210")


def test_empty_cart_is_rejected(seeded):
    with pytest.raises(ValidationError):
        sales_service.create_invoice([])


def test_duplicate_sku_is_rejected(ring_sku):
    with pytest.raises(ValidationError):
        sales_service.create_invoice(cart_for(ring_sku, ring_sku))


def test_discount_cannot_exceed_subtotal(ring_sku):
    with pytest.raises(ValidationError):
        sales_service.create_invoice(cart_for(ring_sku), discount="2700.01")
    with pytest.raises(ValidationError):
        sales_service.create_invoice(cart_for(ring_sku), discount="-5")

    assert inventory_service.get_product(ring_sku) is not None


def test_zero_rate_for_cart_material_is_rejected(ring_sku, db_session):
    with pytest.raises(ValidationError) as excinfo:
        sales_service.create_invoice(cart_for(ring_sku), rate_overrides={"gold:21k": "0"})

    assert excinfo.value.details["rates"] == ["gold:21k"]
    assert db_session.query(Invoice).count() == 0


def test_manual_price_item_sells_without_a_rate(make_product):
    sku = make_product(manual_price_enabled=True, manual_price="15000")

    invoice = sales_service.create_invoice(cart_for(sku), rate_overrides={"gold:21k": "0"})

    assert invoice.subtotal == Decimal("15000.00")


def test_non_finite_line_aborts_the_whole_sale(make_product, db_session):
    good = make_product()
    bad = make_product()
    bad_item = inventory_service.item_for_cart(bad).with_updates(gross_weight_grams=Decimal("NaN"))

    with pytest.raises(ComputationFault):
        sales_service.create_invoice(cart_for(good) + [bad_item])

    assert inventory_service.get_product(good) is not None
    assert inventory_service.get_product(bad) is not None
    assert db_session.query(Invoice).count() == 0
    assert document_service.peek_sequence("invoice") == 0


# =============================================================================
# REVERSAL
# =============================================================================

def test_reversal_is_the_inverse_of_a_sale(make_product, db_session):
    skus = [make_product(), make_product(purity_tier="22k")]
    invoice = sales_service.create_invoice(cart_for(*skus), {"name": "Sana"}, discount="100")
    invoice_id = invoice.id
    payment_service.record_payment(invoice_id, "500")

    result = sales_service.reverse_sale(invoice_id)

    assert result["restored_skus"] == skus
    assert result["postings_deleted"] == 2
    assert sorted(p.sku for p in db_session.query(Product).all()) == sorted(skus)
    assert all(inventory_service.get_sold_product(sku) is None for sku in skus)
    assert sales_service.get_invoice(invoice_id) is None
    assert db_session.query(InvoicePayment).count() == 0
    assert db_session.query(LedgerPosting).filter_by(invoice_ref=invoice_id).count() == 0


def test_restored_piece_keeps_its_attributes(make_product):
    sku = make_product(gross_weight_grams="12.345", labor_charge="750", has_diamonds=True, diamond_charge="2500")
    before = inventory_service.item_for_cart(sku)
    invoice_id = sales_service.create_invoice([before]).id

    sales_service.reverse_sale(invoice_id)

    assert inventory_service.item_for_cart(sku) == before


def test_reversing_a_missing_invoice_is_a_no_op(seeded):
    assert sales_service.reverse_sale("INV-999999") is None


def test_reversal_refuses_when_piece_already_back_in_inventory(ring_sku, db_session):
    invoice_id = sales_service.create_invoice(cart_for(ring_sku)).id
    sold = inventory_service.get_sold_product(ring_sku)
    db_session.add(Product(**ItemAttributes.from_row(sold).column_values()))
    db_session.commit()

    with pytest.raises(ConflictError):
        sales_service.reverse_sale(invoice_id)

    assert sales_service.get_invoice(invoice_id) is not None


def test_edit_flow_resells_archived_pieces(make_product, db_session):
    kept = make_product()
    added = make_product(purity_tier="22k")
    original_id = sales_service.create_invoice(cart_for(kept)).id

    sales_service.reverse_sale(original_id, restore_inventory=False)

    # Reversed without restoring: piece stays archived under the old invoice
    assert inventory_service.get_product(kept) is None
    assert inventory_service.get_sold_product(kept).invoice_id == original_id
    assert ledger_service.get_balance("walk-in").cash == 0

    edited_cart = [inventory_service.item_for_cart(kept, reissued_from=original_id)] + cart_for(added)
    reissued = sales_service.create_invoice(edited_cart, reissued_from=original_id)

    assert reissued.id == "INV-000002"
    assert inventory_service.get_sold_product(kept).invoice_id == reissued.id
    assert inventory_service.get_sold_product(added).invoice_id == reissued.id
    assert ledger_service.get_balance("walk-in").cash == reissued.grand_total


def test_reissue_requires_the_old_invoice_to_be_reversed(ring_sku):
    invoice_id = sales_service.create_invoice(cart_for(ring_sku)).id
    archived = ItemAttributes.from_row(inventory_service.get_sold_product(ring_sku))

    with pytest.raises(ConflictError):
        sales_service.create_invoice([archived], reissued_from=invoice_id)


def test_archived_piece_cannot_be_sold_without_reissue(ring_sku):
    invoice_id = sales_service.create_invoice(cart_for(ring_sku)).id
    sales_service.reverse_sale(invoice_id, restore_inventory=False)
    archived = ItemAttributes.from_row(inventory_service.get_sold_product(ring_sku))

    with pytest.raises(ConflictError):
        sales_service.create_invoice([archived])


def test_reissue_returns_dropped_pieces_and_refreshes_kept_ones(make_product):
    kept = make_product()
    dropped = make_product(purity_tier="22k")
    original_id = sales_service.create_invoice(cart_for(kept, dropped)).id
    sales_service.reverse_sale(original_id, restore_inventory=False)

    repriced = inventory_service.item_for_cart(kept, reissued_from=original_id).with_updates(
        labor_charge=Decimal("800"),
    )
    reissued = sales_service.create_invoice([repriced], reissued_from=original_id)

    # 2000 metal + 200 wastage + 800 labour
    assert reissued.grand_total == Decimal("3000.00")
    sold = inventory_service.get_sold_product(kept)
    assert sold.invoice_id == reissued.id
    assert sold.labor_charge == Decimal("800.00")

    assert inventory_service.get_sold_product(dropped) is None
    restored = inventory_service.get_product(dropped)
    assert restored is not None
    assert restored.purity_tier == "22k"
    assert restored.gross_weight_grams == Decimal("10.000")
