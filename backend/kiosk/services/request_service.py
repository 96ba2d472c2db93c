# backend/kiosk/services/request_service.py
"""
Product Requests Service

Customers at the kiosk can ask for a sold-out product or variant. Requests
are counted per (product, variant): asking again bumps count and
last_requested instead of adding a row. Admins are notified each time.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import ProductRequest
from ..time_utils import utcnow
from ..validation import ValidationError
from . import notification_service
from .concurrency import begin_write, run_with_retry

logger = logging.getLogger(__name__)


def request_product(
    product_id: str,
    product_name: str,
    variant_id: str | None = None,
    variant_name: str | None = None,
) -> ProductRequest:
    product_id = (product_id or "").strip()
    product_name = (product_name or "").strip()
    if not product_id or not product_name:
        raise ValidationError("product_id and product_name are required")
    variant_id = variant_id or None
    variant_name = variant_name or None

    def _op():
        begin_write()
        existing = (
            db.session.query(ProductRequest)
            .filter(
                ProductRequest.product_id == product_id,
                ProductRequest.variant_id.is_(None) if variant_id is None else ProductRequest.variant_id == variant_id,
            )
            .first()
        )
        if existing is not None:
            existing.count = (existing.count or 0) + 1
            existing.last_requested = utcnow()
            existing.product_name = product_name
            if variant_name:
                existing.variant_name = variant_name
            req = existing
        else:
            req = ProductRequest(
                product_id=product_id,
                product_name=product_name,
                variant_id=variant_id,
                variant_name=variant_name,
                count=1,
                last_requested=utcnow(),
            )
            db.session.add(req)
        db.session.commit()
        return req

    req = run_with_retry(_op)
    logger.info("Product request %s for %s (count=%d)", req.id, product_id, req.count)

    notification_service.send_request_notification(product_name, variant_name)
    return req


def list_requests() -> list[dict]:
    rows = db.session.query(ProductRequest).order_by(ProductRequest.created_at.asc(), ProductRequest.id.asc()).all()
    return [r.to_dict() for r in rows]


def delete_request(request_id: str) -> bool:
    req = db.session.get(ProductRequest, request_id)
    if req is None:
        return False
    db.session.delete(req)
    db.session.commit()
    return True


def clear_requests() -> int:
    deleted = db.session.query(ProductRequest).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Cleared %d product requests", deleted)
    return deleted
