# Overview: Admin listing and correction of recorded transactions.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Customer, GUEST_CUSTOMER_ID, Transaction
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

logger = logging.getLogger(__name__)


TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "customer_name", "total", "timestamp", "paid", "pending"},
    required_on_create=set(),
    aliases={"customerId": "customer_id", "customerName": "customer_name"},
)


class TransactionError(Exception):
    def __init__(self, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.status = status


def list_transactions(customer_id: str | None = None, limit: int | None = None) -> list[dict]:
    """Newest first, lines included."""
    query = db.session.query(Transaction)
    if customer_id:
        query = query.filter(Transaction.customer_id == customer_id)
    query = query.order_by(Transaction.timestamp.desc(), Transaction.id.desc())
    if limit:
        query = query.limit(limit)
    return [tx.to_dict() for tx in query.all()]


def get_transaction(transaction_id: str) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def validate_transaction_payload(payload: dict) -> dict:
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = {k: v for k, v in payload.items() if k not in ("id", "items", "state")}
    patch = validate_payload(model=Transaction, payload=payload, policy=TRANSACTION_POLICY, partial=True)
    if "total" in patch and patch["total"] < 0:
        raise ValidationError("total must be >= 0")
    return patch


def update_transaction(*, transaction_id: str, patch: dict) -> Transaction | None:
    """
    Correct a transaction header. Lines are immutable.

    Moving a transaction to another customer refreshes the name snapshot
    unless the patch sets one explicitly.
    PAID is terminal: a paid transaction cannot be reopened.
    """
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        return None

    if tx.paid and patch.get("paid") is False:
        raise TransactionError("Paid transactions cannot be reopened", details={"transaction_id": tx.id})

    new_customer_id = patch.get("customer_id")
    if new_customer_id and new_customer_id != tx.customer_id and new_customer_id != GUEST_CUSTOMER_ID:
        customer = db.session.get(Customer, new_customer_id)
        if customer is None:
            raise TransactionError("Customer not found", details={"customer_id": new_customer_id}, status=404)
        patch.setdefault("customer_name", customer.name)

    for k, v in patch.items():
        setattr(tx, k, v)
    db.session.commit()
    logger.info("Updated transaction %s: %s", tx.id, sorted(patch))
    return tx
