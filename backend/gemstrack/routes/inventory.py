# backend/gemstrack/routes/inventory.py
"""
Catalogue and inventory routes.

- Categories: list and create
- Products: list (optionally paginated), add, look up, edit and delete unsold pieces

Sold pieces are not reachable here; they leave inventory only through
POST /api/invoices.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..validation import GemsTrackError, require_json_object


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/categories")
def list_categories_route():
    rows = inventory_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)}), 200


@inventory_bp.post("/categories")
def create_category_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        category = inventory_service.create_category(payload.get("title"), payload.get("id"))
        return jsonify({"category": category.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/products")
def list_products_route():
    """
    Query params:
    - category_id: filter by category
    - page / per_page: optional pagination (per_page max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    result = inventory_service.list_products(
        category_id=request.args.get("category_id"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result), 200


@inventory_bp.post("/products")
def create_product_route():
    """
    Request body: item attributes without a SKU, e.g.
    {
        "category_id": "cat001",
        "primary_material": "gold",
        "purity_tier": "21k",
        "gross_weight_grams": "10.000",
        "wastage_percentage": "10",
        "labor_charge": "500"
    }

    Returns:
        201: Product created with its generated SKU
        400: Invalid input
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        payload.pop("sku", None)
        product = inventory_service.add_product(payload)
        return jsonify({"product": product.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/products/<sku>")
def get_product_route(sku: str):
    product = inventory_service.get_product(sku)
    if product is not None:
        return jsonify({"product": product.to_dict(), "in_stock": True}), 200

    sold = inventory_service.get_sold_product(sku)
    if sold is not None:
        return jsonify({"product": sold.to_dict(), "in_stock": False}), 200

    return jsonify({"error": "Product not found"}), 404


@inventory_bp.delete("/products/<sku>")
def delete_product_route(sku: str):
    try:
        if not inventory_service.delete_product(sku):
            return jsonify({"error": "Product not found"}), 404
        return "", 204

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/products/<sku>")
def update_product_route(sku: str):
    """
    Edit an unsold piece. Body: any subset of the item attributes.

    Returns:
        200: Updated product (same SKU)
        404: Unknown SKU
        409: The piece has been sold
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        product = inventory_service.update_product(sku, payload)
        if product is None:
            return jsonify({"error": "Product not found"}), 404
        return jsonify({"product": product.to_dict()}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
