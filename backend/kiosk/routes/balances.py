# Overview: Flask API routes for balances, invoicing and payment reconciliation.

# backend/kiosk/routes/balances.py
"""
Balance routes.

State changes commit before any notification is attempted; the response
reports whether the customer was actually notified.
"""
from flask import Blueprint, current_app, jsonify

from ..decorators import require_admin
from ..services import balance_service
from ..services.balance_service import BalanceError

balances_bp = Blueprint("balances", __name__, url_prefix="/api/balances")


@balances_bp.get("/<customer_id>")
@require_admin
def get_balance(customer_id: str):
    """Outstanding and pending-invoice figures plus the unpaid transactions behind them."""
    try:
        balance_service.require_customer(customer_id)
    except BalanceError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status

    summary = balance_service.customer_balance(customer_id)
    return jsonify({
        "customer_id": customer_id,
        **summary.to_dict(),
        "transactions": [tx.to_dict() for tx in balance_service.unpaid_transactions(customer_id)],
    }), 200


@balances_bp.post("/<customer_id>/invoice")
@require_admin
def send_invoice(customer_id: str):
    try:
        change, notified = balance_service.send_invoice(customer_id)
    except BalanceError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to send invoice")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({**change.to_dict(), "notified": notified}), 200


@balances_bp.post("/<customer_id>/paid")
@require_admin
def mark_paid(customer_id: str):
    try:
        change, notified = balance_service.settle_customer(customer_id)
    except BalanceError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to mark customer paid")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({**change.to_dict(), "notified": notified}), 200


@balances_bp.post("/paid-all")
@require_admin
def mark_all_paid():
    try:
        change = balance_service.mark_all_paid()
    except Exception:
        current_app.logger.exception("Failed to mark all invoices paid")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(change.to_dict()), 200


@balances_bp.post("/invoice-all")
@require_admin
def invoice_all():
    try:
        results = balance_service.invoice_all_customers()
    except Exception:
        current_app.logger.exception("Failed to invoice customers")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"invoiced": results}), 200
