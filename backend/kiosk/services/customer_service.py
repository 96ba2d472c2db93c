# Overview: Customer CRUD; balances are attached from the transaction log on every read.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_customer, validate_payload
from .balance_service import BalanceSummary, customer_balance, customer_balances

logger = logging.getLogger(__name__)


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role"},
    required_on_create={"name"},
)


def validate_customer_payload(payload: dict, *, partial: bool) -> dict:
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = {
        k: v for k, v in payload.items()
        if k not in ("id", "balance", "invoice_balance", "invoiceBalance", "created_at", "updated_at", "createdAt", "updatedAt")
    }
    if isinstance(payload.get("role"), str):
        payload["role"] = payload["role"].strip().upper()
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    enforce_rules_customer(patch)
    return patch


def customer_to_dict(customer: Customer, summary: BalanceSummary | None = None) -> dict:
    summary = summary or customer_balance(customer.id)
    return customer.to_dict(balance=summary.outstanding, invoice_balance=summary.pending_invoice)


def list_customers() -> list[dict]:
    customers = db.session.query(Customer).order_by(Customer.name.asc()).all()
    balances = customer_balances()
    return [customer_to_dict(c, balances.get(c.id, BalanceSummary())) for c in customers]


def customer_directory() -> list[dict]:
    """Names for the kiosk customer picker; no email or balances."""
    rows = db.session.query(Customer.id, Customer.name).order_by(Customer.name.asc()).all()
    return [{"id": cid, "name": name} for cid, name in rows]


def get_customer(customer_id: str) -> Customer | None:
    return db.session.get(Customer, customer_id)


def create_customer(*, patch: dict) -> Customer:
    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()
    logger.info("Created customer %s (%s)", customer.id, customer.name)
    return customer


def update_customer(*, customer_id: str, patch: dict) -> Customer | None:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return None
    for k, v in patch.items():
        setattr(customer, k, v)
    db.session.commit()
    return customer


def delete_customer(customer_id: str) -> bool:
    """Transactions keep the customer id and name snapshot; only the customer row goes."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return False
    db.session.delete(customer)
    db.session.commit()
    logger.info("Deleted customer %s", customer_id)
    return True
