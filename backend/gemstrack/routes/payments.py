# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/gemstrack/routes/payments.py
"""
Payment API Routes

DESIGN:
- Record a partial or full payment against an invoice
- Get payment summary and remaining balance
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import payment_service
from ..validation import GemsTrackError, ValidationError, require_json_object


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
def add_payment_route():
    """
    Record a payment.

    Request body:
    {
        "invoice_id": "INV-000042",
        "amount": "1000.00",
        "note": "cash"  (optional)
    }

    Returns:
        201: Payment recorded; body carries the updated invoice
        400: Invalid input
        409: Invoice not found
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        invoice_id = data.get("invoice_id")
        if not invoice_id:
            raise ValidationError("invoice_id required")

        invoice = payment_service.record_payment(invoice_id, data.get("amount"), data.get("note"))
        return jsonify({
            "invoice": invoice.to_dict(include_lines=False),
            "payment_status": payment_service.payment_status(invoice.grand_total, invoice.amount_paid),
        }), 201

    except GemsTrackError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/invoices/<invoice_id>/summary")
def payment_summary_route(invoice_id: str):
    summary = payment_service.get_payment_summary(invoice_id)
    if summary is None:
        return jsonify({"error": "Invoice not found"}), 404
    return jsonify(summary), 200
