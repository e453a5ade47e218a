# Overview: Flask API routes for ledger operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import ledger_service
from ..validation import GemsTrackError, require_json_object

"""
Balance semantics:
- Positive cash/material balances mean the entity owes the shop.
- Statements list postings oldest first.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("/summaries")
def account_summaries_route():
    items = ledger_service.account_summaries()
    return jsonify({"items": items, "count": len(items)}), 200


@ledger_bp.get("/<kind>/<entity_id>")
def statement_route(kind: str, entity_id: str):
    try:
        postings = ledger_service.list_postings(entity_id, kind)
        balance = ledger_service.get_balance(entity_id, kind)
        return jsonify({
            "entity_kind": kind,
            "entity_id": entity_id,
            "items": [p.to_dict() for p in postings],
            "count": len(postings),
            "balance": balance.to_dict(),
        }), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code


@ledger_bp.get("/<kind>/<entity_id>/balance")
def balance_route(kind: str, entity_id: str):
    try:
        balance = ledger_service.get_balance(entity_id, kind)
        return jsonify({"entity_kind": kind, "entity_id": entity_id, **balance.to_dict()}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code


@ledger_bp.post("/entries")
def manual_entry_route():
    """
    Hand-keyed posting.

    Request body:
    {
        "entity_kind": "artisan",
        "entity_id": "4",
        "description": "Gold issued for bangles",
        "material_owed_by_entity": "25.500"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        posting = ledger_service.record_manual_entry(
            entity_id=data.get("entity_id"),
            entity_kind=data.get("entity_kind"),
            description=data.get("description"),
            cash_owed_by_entity=data.get("cash_owed_by_entity"),
            cash_owed_to_entity=data.get("cash_owed_to_entity"),
            material_owed_by_entity=data.get("material_owed_by_entity"),
            material_owed_to_entity=data.get("material_owed_to_entity"),
        )
        return jsonify({"posting": posting.to_dict()}), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record ledger entry")
        return jsonify({"error": "Internal server error"}), 500
