"""
Ledger tests: balances, manual entries and account summaries.
"""

from decimal import Decimal

import pytest

from gemstrack.models import LedgerPosting
from gemstrack.services import customer_service, inventory_service, ledger_service, payment_service, sales_service
from gemstrack.validation import ConflictError, ValidationError


@pytest.fixture
def artisan(seeded):
    return customer_service.create_artisan({"name": "Ustad Karim", "contact": "0345"})


def sell(sku, customer=None):
    return sales_service.create_invoice([inventory_service.item_for_cart(sku)], customer)


def test_empty_ledger_has_zero_balance(seeded):
    balance = ledger_service.get_balance("walk-in")
    assert balance.cash == 0
    assert balance.material == 0
    assert balance.to_dict() == {"cash": "0.00", "material": "0.000"}


def test_artisan_cash_and_material_balances(artisan):
    ledger_service.record_manual_entry(
        entity_id=artisan.id,
        entity_kind="artisan",
        description="Gold issued for bangles",
        material_owed_by_entity="25.5",
    )
    ledger_service.record_manual_entry(
        entity_id=artisan.id,
        entity_kind="artisan",
        description="Labour for bangles",
        cash_owed_to_entity="3000",
    )
    ledger_service.record_manual_entry(
        entity_id=artisan.id,
        entity_kind="artisan",
        description="Bangles delivered",
        material_owed_to_entity="24.75",
    )

    balance = ledger_service.get_balance(artisan.id, "artisan")
    assert balance.cash == Decimal("-3000.00")
    assert balance.material == Decimal("0.750")

    postings = ledger_service.list_postings(artisan.id, "artisan")
    assert [p.description for p in postings] == [
        "Gold issued for bangles",
        "Labour for bangles",
        "Bangles delivered",
    ]
    assert all(p.entity_name == "Ustad Karim" for p in postings)
    assert all(p.invoice_ref is None for p in postings)


def test_balances_are_kept_per_entity_kind(seeded):
    customer = customer_service.create_customer({"name": "Rukhsana"})

    ledger_service.record_manual_entry(
        entity_id=customer.id, entity_kind="customer", description="Old balance", cash_owed_by_entity="100",
    )

    assert ledger_service.get_balance(customer.id, "customer").cash == Decimal("100.00")
    assert ledger_service.get_balance(customer.id, "artisan").cash == 0


def test_manual_entry_validation(artisan, db_session):
    base = {"entity_id": artisan.id, "entity_kind": "artisan"}

    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(description="", cash_owed_by_entity="10", **base)
    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(description="Nothing", **base)
    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(description="Negative", cash_owed_by_entity="-10", **base)
    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(description="NaN", material_owed_to_entity="NaN", **base)
    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(
            entity_id=artisan.id, entity_kind="supplier", description="Kind", cash_owed_by_entity="10",
        )
    with pytest.raises(ValidationError):
        ledger_service.record_manual_entry(
            entity_id="abc", entity_kind="artisan", description="Bad id", cash_owed_by_entity="10",
        )

    assert db_session.query(LedgerPosting).count() == 0


def test_manual_entry_for_missing_entity_conflicts(seeded, db_session):
    with pytest.raises(ConflictError):
        ledger_service.record_manual_entry(
            entity_id=42, entity_kind="artisan", description="Ghost", cash_owed_to_entity="10",
        )
    assert db_session.query(LedgerPosting).count() == 0


def test_walk_in_manual_entry(seeded):
    posting = ledger_service.record_manual_entry(
        entity_id="walk-in", entity_kind="customer", description="Repair fee", cash_owed_by_entity="150",
    )
    assert posting.entity_name == "Walk-in Customer"
    assert ledger_service.get_balance("walk-in").cash == Decimal("150.00")


def test_account_summaries_skip_settled_and_sort_by_name(make_product, artisan):
    settled = sell(make_product(), {"name": "Zara"})
    payment_service.record_payment(settled.id, str(settled.grand_total))

    sell(make_product())
    owing = sell(make_product(), {"name": "aamir"})
    ledger_service.record_manual_entry(
        entity_id=artisan.id, entity_kind="artisan", description="Gold issued", material_owed_by_entity="10",
    )

    summaries = ledger_service.account_summaries()

    assert [s["entity_name"] for s in summaries] == ["aamir", "Ustad Karim", "Walk-in Customer"]
    assert summaries[0]["entity_id"] == str(owing.customer_id)
    assert summaries[0]["cash_balance"] == "2700.00"
    assert summaries[1]["entity_kind"] == "artisan"
    assert summaries[1]["cash_balance"] == "0.00"
    assert summaries[1]["material_balance"] == "10.000"
