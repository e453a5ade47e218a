# Overview: Flask API routes for customers and artisans; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import customer_service, ledger_service
from ..models.ledger import ENTITY_ARTISAN, ENTITY_CUSTOMER
from ..validation import GemsTrackError, require_json_object


customers_bp = Blueprint("customers", __name__, url_prefix="/api")


@customers_bp.get("/customers")
def list_customers_route():
    rows = customer_service.list_customers(search=request.args.get("q"))
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)}), 200


@customers_bp.post("/customers")
def create_customer_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        customer = customer_service.create_customer(payload)
        return jsonify({"customer": customer.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/customers/<int:customer_id>")
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404

    balance = ledger_service.get_balance(customer.id, ENTITY_CUSTOMER)
    return jsonify({
        "customer": customer.to_dict(),
        "balance": balance.to_dict(),
    }), 200


@customers_bp.get("/artisans")
def list_artisans_route():
    rows = customer_service.list_artisans()
    return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)}), 200


@customers_bp.post("/artisans")
def create_artisan_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        artisan = customer_service.create_artisan(payload)
        return jsonify({"artisan": artisan.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create artisan")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/artisans/<int:artisan_id>")
def get_artisan_route(artisan_id: int):
    artisan = customer_service.get_artisan(artisan_id)
    if artisan is None:
        return jsonify({"error": "Artisan not found"}), 404

    balance = ledger_service.get_balance(artisan.id, ENTITY_ARTISAN)
    return jsonify({
        "artisan": artisan.to_dict(),
        "balance": balance.to_dict(),
    }), 200
