from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._ids import new_id


GUEST_CUSTOMER_ID = "guest"


class Transaction(db.Model):
    """
    A completed kiosk purchase.

    PAYMENT STATE (per transaction):
        UNPAID_UNINVOICED  paid=False, pending=False   counts toward balance
        PENDING_INVOICE    paid=False, pending=True    counts toward invoice_balance
        PAID               paid=True                   counts toward neither (terminal)

    customer_id is a plain string so guest checkouts can use "guest".
    customer_name is a snapshot taken at checkout time.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_customer_state", "customer_id", "paid", "pending"),
        db.Index("ix_transactions_timestamp", "timestamp"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    customer_id = db.Column(db.String(32), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    total = db.Column(db.Float, nullable=False, default=0.0)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    paid = db.Column(db.Boolean, nullable=False, default=False)
    pending = db.Column(db.Boolean, nullable=False, default=False)

    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionItem.position",
    )

    @property
    def state(self) -> str:
        if self.paid:
            return "PAID"
        if self.pending:
            return "PENDING_INVOICE"
        return "UNPAID_UNINVOICED"

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} customer_id={self.customer_id} total={self.total} state={self.state}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "timestamp": to_utc_z(self.timestamp),
            "paid": bool(self.paid),
            "pending": bool(self.pending),
            "state": self.state,
        }


class TransactionItem(db.Model):
    """Cart line frozen into a transaction (name and price are snapshots)."""
    __tablename__ = "transaction_items"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    transaction_id = db.Column(
        db.String(32),
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    # No FK: lines must survive deletion of the product they reference
    product_id = db.Column(db.String(32), nullable=False, index=True)
    variant_id = db.Column(db.String(32), nullable=True, index=True)
    variant_name = db.Column(db.String(255), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    image = db.Column(db.String(1024), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)

    @property
    def line_total(self) -> float:
        return (self.price or 0.0) * (self.quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "image": self.image,
            "quantity": self.quantity,
            "line_total": self.line_total,
            "variant": (
                {"id": self.variant_id, "name": self.variant_name or ""}
                if self.variant_id
                else None
            ),
        }
