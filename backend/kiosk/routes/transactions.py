# Overview: Flask API routes for the transaction log.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import transaction_service
from ..services.transaction_service import TransactionError
from ..validation import ValidationError

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_admin
def list_transactions():
    """
    Transactions, newest first.

    Query params:
    - customer_id: str (optional) - only this customer's transactions
    - limit: int (optional)
    """
    customer_id = request.args.get("customer_id")
    limit = request.args.get("limit", type=int)
    return jsonify(transaction_service.list_transactions(customer_id=customer_id, limit=limit)), 200


@transactions_bp.get("/<transaction_id>")
@require_admin
def get_transaction(transaction_id: str):
    tx = transaction_service.get_transaction(transaction_id)
    if tx is None:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify(tx.to_dict()), 200


@transactions_bp.put("/<transaction_id>")
@require_admin
def update_transaction(transaction_id: str):
    payload = request.get_json(silent=True)

    try:
        patch = transaction_service.validate_transaction_payload(payload)
        tx = transaction_service.update_transaction(transaction_id=transaction_id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TransactionError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to update transaction")
        return jsonify({"error": "Internal server error"}), 500

    if tx is None:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify(tx.to_dict()), 200
