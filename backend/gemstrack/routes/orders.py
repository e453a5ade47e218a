# Overview: Flask API routes for custom orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service
from ..validation import GemsTrackError, require_json_object


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def list_orders_route():
    try:
        rows = order_service.list_orders(status=request.args.get("status"))
        return jsonify({"items": [o.to_dict() for o in rows], "count": len(rows)}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("")
def create_order_route():
    """
    Take a custom order.

    Request body:
    {
        "lines": [{"description": "Bridal set", "primary_material": "gold",
                   "purity_tier": "22k", "gross_weight_grams": "45", ...}],
        "customer": {"customer_id": 3} | {"name": "...", "phone": "..."},
        "rate_overrides": {"gold:22k": "215"},
        "advance_cash": "20000",
        "advance_material_value": "5000",
        "advance_material_description": "Old bangle, 2.1 g 21k"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.create_order(
            data.get("lines"),
            data.get("customer"),
            rate_overrides=data.get("rate_overrides"),
            advance_cash=data.get("advance_cash", 0),
            advance_material_value=data.get("advance_material_value", 0),
            advance_material_description=data.get("advance_material_description"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.patch("/<order_id>")
def update_order_route(order_id: str):
    """
    Edit an open order. Every field is optional:
    {"lines": [...], "advance_cash": "25000", "advance_material_value": "0",
     "advance_material_description": "..."}

    New lines are re-quoted at the rates frozen when the order was taken.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.update_order(
            order_id,
            data.get("lines"),
            advance_cash=data.get("advance_cash"),
            advance_material_value=data.get("advance_material_value"),
            advance_material_description=data.get("advance_material_description"),
        )
        return jsonify({"order": order.to_dict()}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<order_id>/status")
def update_order_status_route(order_id: str):
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.update_order_status(order_id, data.get("status"))
        return jsonify({"order": order.to_dict()}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/finalize")
def finalize_order_route(order_id: str):
    """
    Request body:
    {
        "final_measurements": [{"gross_weight_grams": "46.2", "labor_charge": "9000"}],
        "extra_discount": "500"
    }

    Returns:
        201: Invoice created from the order
        409: Order missing, already completed or cancelled
    """
    try:
        data = request.get_json(silent=True) or {}
        require_json_object(data)
        invoice = order_service.finalize_order(
            order_id,
            data.get("final_measurements"),
            extra_discount=data.get("extra_discount", 0),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize order")
        return jsonify({"error": "Internal server error"}), 500
