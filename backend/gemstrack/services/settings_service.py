# Overview: Service-layer operations for shop settings; owns the live rate table.

"""
Rate Table Service

WHY: Metal prices change daily. The live table is edited here only; every
transaction captures a read-only RateTable snapshot and freezes it into the
invoice or order it produces.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import RateEntry
from ..validation import ValidationError, to_decimal
from .concurrency import begin_write_transaction, run_with_retry
from .pricing_service import (
    PURITY_TIERS,
    TIERED_MATERIAL,
    VALID_MATERIALS,
    RateTable,
    parse_rate_key,
    rate_key,
)


def all_rate_keys() -> list[tuple[str, str]]:
    """Every (material, tier) pair the shop can price."""
    keys = []
    for material in VALID_MATERIALS:
        if material == TIERED_MATERIAL:
            keys.extend((material, tier) for tier in PURITY_TIERS)
        else:
            keys.append((material, ""))
    return keys


def get_rate_table() -> RateTable:
    """Read the live rate table (no locking; callers inside a transaction read it there)."""
    rows = db.session.query(RateEntry).all()
    return RateTable(rates={
        (row.material, row.purity_tier or ""): Decimal(row.unit_price_per_gram)
        for row in rows
    })


def list_rates() -> list[RateEntry]:
    return db.session.query(RateEntry).order_by(RateEntry.material, RateEntry.purity_tier).all()


def _parse_updates(updates: Mapping[str, Any]) -> dict[tuple[str, str], Decimal]:
    if not updates:
        raise ValidationError("At least one rate is required")
    parsed: dict[tuple[str, str], Decimal] = {}
    for key, value in updates.items():
        material, tier = parse_rate_key(key)
        price = to_decimal(value, f"rates.{key}")
        if not price.is_finite():
            raise ValidationError(f"Rate for {key} must be a finite number")
        parsed[(material, tier)] = price
    return parsed


def set_rates(updates: Mapping[str, Any]) -> RateTable:
    """
    Upsert unit prices.

    Args:
        updates: {"gold:21k": "200", "platinum": 350, ...}. Each gold tier
            is set on its own; no tier is derived from another.

    Returns:
        The live RateTable after the update.
    """
    parsed = _parse_updates(updates)

    def _op():
        begin_write_transaction()
        existing = {
            (row.material, row.purity_tier or ""): row
            for row in db.session.query(RateEntry).all()
        }

        for (material, tier), price in parsed.items():
            row = existing.get((material, tier))
            if row is None:
                db.session.add(RateEntry(material=material, purity_tier=tier, unit_price_per_gram=price))
            else:
                row.unit_price_per_gram = price

        db.session.commit()
        current_app.logger.info(
            "Rates updated: %s",
            ", ".join(f"{rate_key(m, t)}={p}" for (m, t), p in sorted(parsed.items())),
        )
        return get_rate_table()

    return run_with_retry(_op)


def ensure_default_rates() -> int:
    """
    Seed a zero-priced row for every rate key so the settings screen lists them all.

    Safe to call repeatedly (idempotent). Returns the number created.
    """
    existing = {
        (row.material, row.purity_tier or "")
        for row in db.session.query(RateEntry).all()
    }
    created = 0
    for material, tier in all_rate_keys():
        if (material, tier) not in existing:
            db.session.add(RateEntry(material=material, purity_tier=tier, unit_price_per_gram=0))
            created += 1
    db.session.commit()
    return created
