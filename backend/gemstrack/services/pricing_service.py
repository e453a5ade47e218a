# Overview: Pure pricing engine; turns item attributes and a rate table into a cost breakdown.

"""
Pricing Engine

WHY: Every price the shop quotes (shelf tag, cart, invoice, custom-order
estimate) must come out of one deterministic function so an invoice can be
re-priced from its frozen rate snapshot and produce the same numbers.

DESIGN PRINCIPLES:
- No I/O, no database, no Flask: callers pass everything in
- Total: valid numeric input never raises; a non-finite result comes back
  as an all-zero breakdown with `fault` set, and the caller decides
- Each gold purity tier has its own rate (no 24k * karat/24 scaling)
- Components are rounded to cents and the total is their sum
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..money_utils import ZERO, quantize_money
from ..validation import ValidationError, optional_str, to_bool, to_decimal


# =============================================================================
# MATERIALS (CONSTANTS)
# =============================================================================

MATERIAL_GOLD = "gold"
MATERIAL_PALLADIUM = "palladium"
MATERIAL_PLATINUM = "platinum"
MATERIAL_SILVER = "silver"

VALID_MATERIALS = [
    MATERIAL_GOLD,
    MATERIAL_PALLADIUM,
    MATERIAL_PLATINUM,
    MATERIAL_SILVER,
]

# Gold is the only tiered metal; every tier is priced independently
TIERED_MATERIAL = MATERIAL_GOLD
PURITY_TIERS = ["18k", "21k", "22k", "24k"]
DEFAULT_PURITY_TIER = "21k"

# Base metals sold by weight with no wastage allowance
NO_WASTAGE_MATERIALS = frozenset({MATERIAL_SILVER})

# Coins price at near-metal value: no wastage, labour or stone charges
BULLION_COIN_CATEGORY_ID = "cat017"


# =============================================================================
# RATE TABLE
# =============================================================================

def normalize_tier(material: Optional[str], tier: Optional[str]) -> str:
    """Tier key for a material: gold defaults to 21k, untiered materials use ""."""
    if material != TIERED_MATERIAL:
        return ""
    tier = (tier or "").strip().lower()
    return tier or DEFAULT_PURITY_TIER


def rate_key(material: str, tier: Optional[str] = None) -> str:
    """Snapshot key, e.g. "gold:21k" or "silver"."""
    normalized = normalize_tier(material, tier)
    return f"{material}:{normalized}" if normalized else material


@dataclass(frozen=True)
class RateTable:
    """
    Immutable (material, purity tier) -> unit price per gram mapping.

    Captured once per transaction and frozen into the resulting invoice or
    order as a snapshot so historical prices stay reproducible.
    """
    rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict)

    def rate_for(self, material: Optional[str], tier: Optional[str] = None) -> Decimal:
        """Unit price per gram; 0 when the material/tier is not configured."""
        if not material:
            return ZERO
        return self.rates.get((material, normalize_tier(material, tier)), ZERO)

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "RateTable":
        """
        Return a copy with per-transaction overrides applied.

        Override keys use the snapshot format ("gold:22k", "platinum").
        """
        if overrides is not None and not isinstance(overrides, Mapping):
            raise ValidationError("rate_overrides must be an object")
        if not overrides:
            return self
        merged = dict(self.rates)
        for key, value in overrides.items():
            material, tier = parse_rate_key(key)
            price = to_decimal(value, f"rate_overrides.{key}")
            if not price.is_finite():
                raise ValidationError(f"Rate override for {key} must be a finite number")
            merged[(material, tier)] = price
        return RateTable(rates=merged)

    def to_snapshot(self) -> dict[str, str]:
        return {
            (f"{material}:{tier}" if tier else material): str(price)
            for (material, tier), price in sorted(self.rates.items())
        }

    @classmethod
    def from_snapshot(cls, snapshot: Optional[Mapping[str, Any]]) -> "RateTable":
        rates: dict[tuple[str, str], Decimal] = {}
        for key, value in (snapshot or {}).items():
            rates[parse_rate_key(key)] = Decimal(str(value))
        return cls(rates=rates)


def parse_rate_key(key: str) -> tuple[str, str]:
    """Split "gold:22k" into ("gold", "22k"); reject unknown materials/tiers."""
    material, _, tier = str(key).strip().lower().partition(":")
    if material not in VALID_MATERIALS:
        raise ValidationError(f"Unknown material: {material}. Must be one of {VALID_MATERIALS}")
    if material == TIERED_MATERIAL:
        tier = tier or DEFAULT_PURITY_TIER
        if tier not in PURITY_TIERS:
            raise ValidationError(f"Unknown purity tier: {tier}. Must be one of {PURITY_TIERS}")
        return material, tier
    return material, ""


# =============================================================================
# ITEM ATTRIBUTES
# =============================================================================

_DECIMAL_FIELDS = (
    "gross_weight_grams",
    "secondary_weight_grams",
    "gemstone_weight_grams",
    "wastage_percentage",
    "labor_charge",
    "diamond_charge",
    "gemstone_charge",
    "misc_charge",
    "manual_price",
)

_BOOL_FIELDS = ("has_gemstones", "has_diamonds", "manual_price_enabled")


@dataclass(frozen=True)
class ItemAttributes:
    """
    Shared shape of an inventory piece, a cart entry and an order-line estimate.

    sku is empty for custom-order lines, which never existed in inventory.
    """
    sku: str = ""
    name: str = ""
    category_id: str = ""
    primary_material: str = MATERIAL_GOLD
    purity_tier: Optional[str] = None
    gross_weight_grams: Decimal = ZERO
    secondary_material: Optional[str] = None
    secondary_purity_tier: Optional[str] = None
    secondary_weight_grams: Decimal = ZERO
    has_gemstones: bool = False
    gemstone_weight_grams: Decimal = ZERO
    wastage_percentage: Decimal = ZERO
    labor_charge: Decimal = ZERO
    has_diamonds: bool = False
    diamond_charge: Decimal = ZERO
    gemstone_charge: Decimal = ZERO
    misc_charge: Decimal = ZERO
    manual_price_enabled: bool = False
    manual_price: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ItemAttributes":
        """Build from JSON-ish input; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in _DECIMAL_FIELDS:
                kwargs[key] = to_decimal(value, key)
            elif key in _BOOL_FIELDS:
                kwargs[key] = to_bool(value)
            elif key in ("sku", "name", "category_id"):
                kwargs[key] = optional_str(value) or ""
            else:
                kwargs[key] = optional_str(value, 32)
        if not kwargs.get("primary_material"):
            kwargs.pop("primary_material", None)
        for key in ("primary_material", "purity_tier", "secondary_material", "secondary_purity_tier"):
            if kwargs.get(key):
                kwargs[key] = kwargs[key].lower()
        return cls(**kwargs)

    @classmethod
    def from_row(cls, row: Any) -> "ItemAttributes":
        """Build from a Product/SoldProduct row (ItemColumnsMixin)."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = getattr(row, f.name, None)
            if f.name in _DECIMAL_FIELDS:
                value = Decimal(value) if value is not None else ZERO
            elif f.name in _BOOL_FIELDS:
                value = bool(value)
            elif f.name in ("sku", "name", "category_id"):
                value = value or ""
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = str(value) if isinstance(value, Decimal) else value
        return data

    def column_values(self) -> dict[str, Any]:
        """Keyword arguments for a Product/SoldProduct constructor."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if not self.manual_price_enabled:
            data["manual_price"] = None
        return data

    def with_updates(self, **changes: Any) -> "ItemAttributes":
        return replace(self, **changes)


def validate_item(item: ItemAttributes, *, require_sku: bool = False) -> None:
    """
    Input-boundary checks for an item.

    Non-finite numbers are left for the pricing guard so they surface as a
    ComputationFault rather than a validation message.
    """
    if require_sku and not item.sku:
        raise ValidationError("sku is required")
    if item.primary_material not in VALID_MATERIALS:
        raise ValidationError(
            f"Invalid material: {item.primary_material}. Must be one of {VALID_MATERIALS}",
            {"sku": item.sku},
        )
    if item.secondary_material and item.secondary_material not in VALID_MATERIALS:
        raise ValidationError(
            f"Invalid secondary material: {item.secondary_material}",
            {"sku": item.sku},
        )
    for material, tier in (
        (item.primary_material, item.purity_tier),
        (item.secondary_material, item.secondary_purity_tier),
    ):
        if material == TIERED_MATERIAL and tier and tier.lower() not in PURITY_TIERS:
            raise ValidationError(
                f"Invalid purity tier: {tier}. Must be one of {PURITY_TIERS}",
                {"sku": item.sku},
            )
    gross = item.gross_weight_grams
    stones = item.gemstone_weight_grams
    if gross.is_finite() and stones.is_finite() and stones > gross:
        raise ValidationError(
            "gemstone_weight_grams cannot exceed gross_weight_grams",
            {"sku": item.sku, "gross_weight_grams": str(gross), "gemstone_weight_grams": str(stones)},
        )


# =============================================================================
# COST BREAKDOWN
# =============================================================================

@dataclass(frozen=True)
class CostBreakdown:
    metal_cost: Decimal = ZERO
    wastage_cost: Decimal = ZERO
    labor_charge: Decimal = ZERO
    diamond_charge: Decimal = ZERO
    gemstone_charge: Decimal = ZERO
    misc_charge: Decimal = ZERO
    total_price: Decimal = ZERO
    # Set when the computation hit a non-finite value; all amounts are then 0
    fault: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metal_cost": str(self.metal_cost),
            "wastage_cost": str(self.wastage_cost),
            "labor_charge": str(self.labor_charge),
            "diamond_charge": str(self.diamond_charge),
            "gemstone_charge": str(self.gemstone_charge),
            "misc_charge": str(self.misc_charge),
            "total_price": str(self.total_price),
            "fault": self.fault,
        }


def is_bullion_coin(item: ItemAttributes) -> bool:
    return item.category_id == BULLION_COIN_CATEGORY_ID and item.primary_material == TIERED_MATERIAL


def price_item(item: ItemAttributes, rates: RateTable) -> CostBreakdown:
    """
    Price one piece against a rate table.

    Returns:
        CostBreakdown; `fault` is set (and every amount is 0) when any input
        or intermediate value is non-finite.
    """
    if item.manual_price_enabled:
        fixed = item.manual_price
        if not fixed.is_finite():
            return CostBreakdown(fault="manual_price is not finite")
        return CostBreakdown(total_price=quantize_money(fixed))

    non_finite = [
        name for name in _DECIMAL_FIELDS
        if name != "manual_price" and not getattr(item, name).is_finite()
    ]
    if non_finite:
        return CostBreakdown(fault=f"non-finite input: {', '.join(non_finite)}")

    primary_rate = rates.rate_for(item.primary_material, item.purity_tier)
    secondary_rate = rates.rate_for(item.secondary_material, item.secondary_purity_tier)
    if not primary_rate.is_finite() or not secondary_rate.is_finite():
        return CostBreakdown(fault="non-finite rate")

    try:
        net_primary_weight = max(ZERO, item.gross_weight_grams - item.gemstone_weight_grams)
        primary_metal_cost = net_primary_weight * primary_rate

        secondary_metal_cost = ZERO
        if item.secondary_material:
            secondary_metal_cost = item.secondary_weight_grams * secondary_rate

        total_metal_cost = quantize_money(primary_metal_cost + secondary_metal_cost)

        wastage_percentage = item.wastage_percentage
        labor_charge = item.labor_charge
        diamond_charge = item.diamond_charge if item.has_diamonds else ZERO
        gemstone_charge = item.gemstone_charge
        misc_charge = item.misc_charge

        if is_bullion_coin(item):
            wastage_percentage = ZERO
            labor_charge = ZERO
            diamond_charge = ZERO
            gemstone_charge = ZERO
            misc_charge = ZERO

        if item.primary_material in NO_WASTAGE_MATERIALS:
            wastage_cost = ZERO
        else:
            wastage_cost = quantize_money(total_metal_cost * wastage_percentage / Decimal(100))

        labor_charge = quantize_money(labor_charge)
        diamond_charge = quantize_money(diamond_charge)
        gemstone_charge = quantize_money(gemstone_charge)
        misc_charge = quantize_money(misc_charge)

        total_price = (
            total_metal_cost + wastage_cost + labor_charge
            + diamond_charge + gemstone_charge + misc_charge
        )
    except (InvalidOperation, OverflowError) as exc:
        return CostBreakdown(fault=f"arithmetic error: {exc.__class__.__name__}")

    if not total_price.is_finite():
        return CostBreakdown(fault="non-finite total")

    return CostBreakdown(
        metal_cost=total_metal_cost,
        wastage_cost=wastage_cost,
        labor_charge=labor_charge,
        diamond_charge=diamond_charge,
        gemstone_charge=gemstone_charge,
        misc_charge=misc_charge,
        total_price=total_price,
    )
