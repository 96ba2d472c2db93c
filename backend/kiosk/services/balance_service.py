# Overview: Derived customer balances and the invoice/payment state machine over transactions.

"""
Balances Service

Balances are never stored. They are a fold over the transaction log,
recomputed on every read:

    outstanding     = SUM(total) WHERE NOT paid AND NOT pending
    pending_invoice = SUM(total) WHERE NOT paid AND pending

Transaction state machine (per row):

    UNPAID_UNINVOICED --(invoice sent)--> PENDING_INVOICE --(payment received)--> PAID

PAID is terminal. The mutations below are bulk UPDATEs issued inside a
single database transaction; they never touch PAID rows.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import and_, case, func

from ..extensions import db
from ..models import Customer, Transaction
from .concurrency import begin_write
from ._records import value_of

logger = logging.getLogger(__name__)


class BalanceError(Exception):
    """Raised for balance and invoicing operation errors."""
    def __init__(self, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.status = status


@dataclass(frozen=True)
class BalanceSummary:
    outstanding: float = 0.0
    pending_invoice: float = 0.0

    def to_dict(self) -> dict:
        return {
            "outstanding": self.outstanding,
            "pending_invoice": self.pending_invoice,
        }


@dataclass(frozen=True)
class BalanceChange:
    """Outcome of a state transition: rows moved and the money they carry."""
    customer_id: str | None
    transactions_affected: int
    amount: float

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "transactions_affected": self.transactions_affected,
            "amount": self.amount,
        }


def aggregate(customer_id: str, transactions: Iterable) -> BalanceSummary:
    """
    Partition a customer's transactions by payment state and sum each part.

    Pure: accepts ORM rows or mappings, mutates nothing. Paid transactions
    count toward neither figure whatever their pending flag says.
    """
    outstanding = []
    pending_invoice = []
    for tx in transactions:
        if value_of(tx, "customer_id") != customer_id:
            continue
        if value_of(tx, "paid", False):
            continue
        total = float(value_of(tx, "total", 0.0))
        if value_of(tx, "pending", False):
            pending_invoice.append(total)
        else:
            outstanding.append(total)
    return BalanceSummary(outstanding=math.fsum(outstanding), pending_invoice=math.fsum(pending_invoice))


_UNPAID = Transaction.paid.is_(False)
_OUTSTANDING = and_(_UNPAID, Transaction.pending.is_(False))
_PENDING_INVOICE = and_(_UNPAID, Transaction.pending.is_(True))


def customer_balances(customer_ids: Iterable[str] | None = None) -> dict[str, BalanceSummary]:
    """
    Database-side aggregate: one grouped query for every (or the given) customer.

    Customers without unpaid transactions are absent from the result;
    callers default them to BalanceSummary().
    """
    query = db.session.query(
        Transaction.customer_id,
        func.coalesce(func.sum(case((_OUTSTANDING, Transaction.total), else_=0.0)), 0.0).label("outstanding"),
        func.coalesce(func.sum(case((_PENDING_INVOICE, Transaction.total), else_=0.0)), 0.0).label("pending_invoice"),
    ).filter(_UNPAID)

    if customer_ids is not None:
        query = query.filter(Transaction.customer_id.in_(list(customer_ids)))

    rows = query.group_by(Transaction.customer_id).all()
    return {
        row.customer_id: BalanceSummary(
            outstanding=float(row.outstanding or 0.0),
            pending_invoice=float(row.pending_invoice or 0.0),
        )
        for row in rows
    }


def customer_balance(customer_id: str) -> BalanceSummary:
    return customer_balances([customer_id]).get(customer_id, BalanceSummary())


def require_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise BalanceError("Customer not found", details={"customer_id": customer_id}, status=404)
    return customer


def unpaid_transactions(customer_id: str) -> list[Transaction]:
    """Everything the customer still owes, oldest first (invoice line items)."""
    return (
        db.session.query(Transaction)
        .filter(Transaction.customer_id == customer_id, _UNPAID)
        .order_by(Transaction.timestamp.asc())
        .all()
    )


def mark_invoice_sent(customer_id: str) -> BalanceChange:
    """
    Flag every unpaid transaction of the customer as pending invoice.

    Idempotent: already-pending rows stay pending. amount is the full
    invoiced figure (pending_invoice after the update).
    """
    require_customer(customer_id)
    begin_write()
    affected = (
        db.session.query(Transaction)
        .filter(Transaction.customer_id == customer_id, _UNPAID)
        .update({Transaction.pending: True}, synchronize_session=False)
    )
    amount = db.session.query(
        func.coalesce(func.sum(Transaction.total), 0.0)
    ).filter(Transaction.customer_id == customer_id, _PENDING_INVOICE).scalar()
    db.session.commit()
    db.session.expire_all()

    logger.info("Invoice sent to customer %s: %d transactions, amount=%.2f", customer_id, affected, amount or 0.0)
    return BalanceChange(customer_id=customer_id, transactions_affected=affected, amount=float(amount or 0.0))


def mark_customer_paid(customer_id: str) -> BalanceChange:
    """
    Settle the customer's pending invoice: pending rows become paid.

    amount is what was settled (sum of pending, unpaid totals before the
    update). Outstanding, not-yet-invoiced purchases are untouched.
    """
    require_customer(customer_id)
    begin_write()
    scope = (Transaction.customer_id == customer_id, _PENDING_INVOICE)
    amount = db.session.query(func.coalesce(func.sum(Transaction.total), 0.0)).filter(*scope).scalar()
    affected = (
        db.session.query(Transaction)
        .filter(*scope)
        .update({Transaction.paid: True}, synchronize_session=False)
    )
    db.session.commit()
    db.session.expire_all()

    logger.info("Customer %s paid: %d transactions, amount=%.2f", customer_id, affected, amount or 0.0)
    return BalanceChange(customer_id=customer_id, transactions_affected=affected, amount=float(amount or 0.0))


def mark_all_paid() -> BalanceChange:
    """Bulk reconciliation: every pending, unpaid transaction of every customer becomes paid."""
    begin_write()
    amount = db.session.query(func.coalesce(func.sum(Transaction.total), 0.0)).filter(_PENDING_INVOICE).scalar()
    affected = (
        db.session.query(Transaction)
        .filter(_PENDING_INVOICE)
        .update({Transaction.paid: True}, synchronize_session=False)
    )
    db.session.commit()
    db.session.expire_all()

    logger.info("Marked all pending invoices paid: %d transactions, amount=%.2f", affected, amount or 0.0)
    return BalanceChange(customer_id=None, transactions_affected=affected, amount=float(amount or 0.0))


def send_invoice(customer_id: str) -> tuple[BalanceChange, bool]:
    """
    Invoice a customer and notify them.

    The state change commits first; notification is best-effort and its
    outcome is returned as the second element.
    """
    from . import notification_service

    change = mark_invoice_sent(customer_id)
    customer = db.session.get(Customer, customer_id)
    delivered = notification_service.send_invoice_notification(
        customer,
        unpaid_transactions(customer_id),
        change.amount,
    )
    return change, delivered


def settle_customer(customer_id: str) -> tuple[BalanceChange, bool]:
    """Mark a customer's pending invoice paid and send a payment receipt."""
    from . import notification_service

    change = mark_customer_paid(customer_id)
    customer = db.session.get(Customer, customer_id)
    delivered = notification_service.send_payment_received_notification(customer, change.amount)
    return change, delivered


def invoice_all_customers() -> list[dict]:
    """Send an invoice to every customer who has an outstanding balance."""
    balances = customer_balances()
    results = []
    customers = db.session.query(Customer).order_by(Customer.name.asc()).all()
    for customer in customers:
        summary = balances.get(customer.id)
        if summary is None or summary.outstanding <= 0:
            continue
        change, delivered = send_invoice(customer.id)
        results.append({**change.to_dict(), "notified": delivered})
    return results
