from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._ids import new_id


class ProductRequest(db.Model):
    """
    A customer asked for an out-of-stock product (or variant) at the kiosk.

    One row per (product_id, variant_id); repeated requests bump count.
    """
    __tablename__ = "product_requests"
    __table_args__ = (
        db.Index("ix_product_requests_product_variant", "product_id", "variant_id"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    product_id = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    variant_id = db.Column(db.String(32), nullable=True)
    variant_name = db.Column(db.String(255), nullable=True)

    count = db.Column(db.Integer, nullable=False, default=1)
    last_requested = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "variant_id": self.variant_id,
            "variant_name": self.variant_name,
            "count": self.count,
            "last_requested": to_utc_z(self.last_requested),
            "created_at": to_utc_z(self.created_at),
        }
