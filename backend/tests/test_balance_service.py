"""
Balance derivation and invoice/payment state machine tests.
"""

import pytest

from conftest import make_transaction
from kiosk.models import Customer, Transaction
from kiosk.services import balance_service
from kiosk.services.balance_service import BalanceError, aggregate


# =============================================================================
# PURE AGGREGATION
# =============================================================================


class TestAggregate:

    def test_partitions_by_payment_state(self):
        transactions = [
            {"customer_id": "c", "total": 100, "paid": False, "pending": False},
            {"customer_id": "c", "total": 50, "paid": False, "pending": True},
            {"customer_id": "c", "total": 30, "paid": True, "pending": True},
        ]
        summary = aggregate("c", transactions)
        assert summary.outstanding == 100
        assert summary.pending_invoice == 50

    def test_ignores_other_customers(self):
        transactions = [
            {"customerId": "c", "total": 10, "paid": False, "pending": False},
            {"customerId": "d", "total": 99, "paid": False, "pending": False},
        ]
        assert aggregate("c", transactions).outstanding == 10

    def test_paid_never_counts(self):
        transactions = [
            {"customer_id": "c", "total": 10, "paid": True, "pending": False},
            {"customer_id": "c", "total": 20, "paid": True, "pending": True},
        ]
        summary = aggregate("c", transactions)
        assert summary.outstanding == 0
        assert summary.pending_invoice == 0

    def test_is_additive_over_disjoint_subsets(self):
        transactions = [
            {"customer_id": "c", "total": t, "paid": paid, "pending": pending}
            for t, paid, pending in [
                (12.5, False, False), (7.25, False, True), (3, True, False),
                (40, False, False), (0.1, False, True), (0.2, False, True),
            ]
        ]
        whole = aggregate("c", transactions)
        left = aggregate("c", transactions[:3])
        right = aggregate("c", transactions[3:])
        assert whole.outstanding == pytest.approx(left.outstanding + right.outstanding)
        assert whole.pending_invoice == pytest.approx(left.pending_invoice + right.pending_invoice)

    def test_empty(self):
        summary = aggregate("c", [])
        assert summary.to_dict() == {"outstanding": 0.0, "pending_invoice": 0.0}


# =============================================================================
# DATABASE-SIDE BALANCES
# =============================================================================


class TestCustomerBalances:

    def test_matches_pure_aggregate(self, db_session, customer):
        make_transaction(customer, 100)
        make_transaction(customer, 50, pending=True)
        make_transaction(customer, 30, paid=True, pending=True)

        summary = balance_service.customer_balance(customer.id)
        expected = aggregate(customer.id, db_session.query(Transaction).all())
        assert summary == expected
        assert summary.outstanding == 100
        assert summary.pending_invoice == 50

    def test_customer_without_transactions(self, db_session, customer):
        assert balance_service.customer_balance(customer.id).outstanding == 0.0
        assert customer.id not in balance_service.customer_balances()


# =============================================================================
# STATE TRANSITIONS
# =============================================================================


class TestStateTransitions:

    def test_mark_invoice_sent(self, db_session, customer):
        make_transaction(customer, 100)
        make_transaction(customer, 50, pending=True)
        paid = make_transaction(customer, 30, paid=True)

        change = balance_service.mark_invoice_sent(customer.id)

        assert change.transactions_affected == 2
        assert change.amount == 150
        summary = balance_service.customer_balance(customer.id)
        assert summary.outstanding == 0
        assert summary.pending_invoice == 150
        assert db_session.get(Transaction, paid.id).pending is False

    def test_mark_invoice_sent_is_idempotent(self, db_session, customer):
        make_transaction(customer, 40)
        balance_service.mark_invoice_sent(customer.id)
        again = balance_service.mark_invoice_sent(customer.id)

        assert again.amount == 40
        assert balance_service.customer_balance(customer.id).pending_invoice == 40

    def test_mark_customer_paid_settles_only_invoiced(self, db_session, customer):
        make_transaction(customer, 100)
        make_transaction(customer, 50, pending=True)

        change = balance_service.mark_customer_paid(customer.id)

        assert change.transactions_affected == 1
        assert change.amount == 50
        summary = balance_service.customer_balance(customer.id)
        assert summary.outstanding == 100
        assert summary.pending_invoice == 0

    def test_mark_all_paid(self, db_session, customer):
        bob = Customer(name="Bob", email=None)
        db_session.add(bob)
        db_session.commit()
        make_transaction(customer, 10, pending=True)
        make_transaction(bob, 20, pending=True)
        make_transaction(bob, 5)

        change = balance_service.mark_all_paid()

        assert change.transactions_affected == 2
        assert change.amount == 30
        assert balance_service.customer_balance(bob.id).outstanding == 5
        assert balance_service.customer_balance(bob.id).pending_invoice == 0

    def test_unknown_customer(self, db_session):
        with pytest.raises(BalanceError) as exc:
            balance_service.mark_invoice_sent("nobody")
        assert exc.value.status == 404


class TestNotifyingTransitions:

    def test_send_invoice_notifies_with_full_amount(self, db_session, customer, sent):
        make_transaction(customer, 100, items=[
            {"product_id": "p1", "name": "Chocolate bar", "price": 50.0, "quantity": 2},
        ])
        make_transaction(customer, 25, pending=True, items=[
            {"product_id": "p2", "name": "Water", "price": 25.0, "quantity": 1},
        ])

        change, delivered = balance_service.send_invoice(customer.id)

        assert delivered is True
        assert change.amount == 125
        email = next(payload for kind, payload in sent if kind == "email")
        assert email["to"] == "alice@example.com"
        assert "2 pc Chocolate bar - $100" in email["html"]
        assert "1 pc Water - $25" in email["html"]
        assert "Total: $125" in email["html"]

    def test_settle_customer_sends_receipt(self, db_session, customer, sent):
        make_transaction(customer, 60, pending=True)

        change, delivered = balance_service.settle_customer(customer.id)

        assert delivered is True
        assert change.amount == 60
        slack = next(payload for kind, payload in sent if kind == "slack")
        assert slack["email"] == "alice@example.com"
        assert "$60" in slack["text"]

    def test_invoice_all_skips_customers_without_outstanding(self, db_session, customer, sent):
        bob = Customer(name="Bob", email="bob@example.com")
        db_session.add(bob)
        db_session.commit()
        make_transaction(customer, 10)
        make_transaction(bob, 20, pending=True)

        results = balance_service.invoice_all_customers()

        assert [r["customer_id"] for r in results] == [customer.id]
        assert results[0]["notified"] is True
