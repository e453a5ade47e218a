from __future__ import annotations

from flask import Blueprint, jsonify, request, current_app

from ..services import settings_service
from ..validation import GemsTrackError, require_json_object


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


@settings_bp.get("/settings/rates")
def get_rates():
    rows = settings_service.list_rates()
    return jsonify({
        "rates": settings_service.get_rate_table().to_snapshot(),
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
    })


@settings_bp.put("/settings/rates")
def put_rates():
    """
    Request body:
    {
        "rates": {"gold:21k": "200.00", "gold:24k": "228.50", "silver": "3.10"}
    }
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        updates = payload.get("rates", payload)
        if not isinstance(updates, dict):
            return jsonify({"error": "rates must be an object"}), 400
        table = settings_service.set_rates(updates)
        return jsonify({"rates": table.to_snapshot()}), 200

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update rates")
        return jsonify({"error": "Internal server error"}), 500
