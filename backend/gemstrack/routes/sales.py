# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/gemstrack/routes/sales.py
"""Invoice API routes: sell a cart, view an invoice, reverse a sale"""

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service, sales_service
from ..validation import GemsTrackError, ValidationError, require_json_object, to_bool


sales_bp = Blueprint("sales", __name__, url_prefix="/api/invoices")


def _cart_from_payload(entries, reissued_from):
    """
    Cart entries may be full item dicts or just {"sku": ...}; the latter are
    filled in from inventory (or from the archive of a reversed invoice).
    """
    if not isinstance(entries, list):
        raise ValidationError("items must be a list")
    cart = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"sku": entry}
        if isinstance(entry, dict) and set(entry) <= {"sku"}:
            cart.append(inventory_service.item_for_cart(entry.get("sku") or "", reissued_from))
        else:
            cart.append(entry)
    return cart


@sales_bp.post("")
def create_invoice_route():
    """
    Sell a cart.

    Request body:
    {
        "items": [{"sku": "RIN-000001"}, {...full item attributes...}],
        "customer": {"customer_id": 3} | {"name": "Ayesha", "phone": "0300..."} | null,
        "rate_overrides": {"gold:21k": "205"},
        "discount": "200",
        "reissued_from": "INV-000007"  (optional, edit flow)
    }

    Returns:
        201: Invoice created
        400: Invalid input (empty cart, zero rate, discount too large)
        409: An item is no longer available
        422: A price could not be computed
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        reissued_from = data.get("reissued_from")
        cart = _cart_from_payload(data.get("items"), reissued_from)

        invoice = sales_service.create_invoice(
            cart,
            data.get("customer"),
            rate_overrides=data.get("rate_overrides"),
            discount=data.get("discount", 0),
            reissued_from=reissued_from,
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<invoice_id>")
def get_invoice_route(invoice_id: str):
    invoice = sales_service.get_invoice(invoice_id)
    if not invoice:
        return jsonify({"error": "Invoice not found"}), 404

    return jsonify({"invoice": invoice.to_dict()}), 200


@sales_bp.post("/<invoice_id>/reverse")
def reverse_invoice_route(invoice_id: str):
    """
    Reverse a sale and its ledger effects.

    Request body (optional):
    {
        "restore_inventory": false   (edit flow: leave pieces in the sold archive)
    }

    An unknown invoice is a no-op and still returns 200.
    """
    try:
        data = request.get_json(silent=True) or {}
        restore = to_bool(data.get("restore_inventory", True))

        result = sales_service.reverse_sale(invoice_id, restore_inventory=restore)
        if result is None:
            return jsonify({"invoice_id": invoice_id, "reversed": False}), 200
        return jsonify({"reversed": True, **result}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reverse invoice")
        return jsonify({"error": "Internal server error"}), 500
