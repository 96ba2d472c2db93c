from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._ids import new_id


CUSTOMER_ROLES = ("USER", "ADMIN")


class Customer(db.Model):
    """
    Kiosk customer (a person who buys on tab).

    DERIVED BALANCES: balance and invoice_balance are NOT columns. They are
    summed from transactions on every read (balance_service). to_dict()
    accepts them as arguments so callers can attach the computed figures.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(16), nullable=False, default="USER")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self, balance: float = 0.0, invoice_balance: float = 0.0) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role or "USER",
            "balance": balance,
            "invoice_balance": invoice_balance,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
