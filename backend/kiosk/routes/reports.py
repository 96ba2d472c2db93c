from flask import Blueprint, jsonify

from ..decorators import require_admin
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_admin
def dashboard():
    return jsonify(reporting_service.dashboard_summary()), 200


@reports_bp.get("/sales")
@require_admin
def sales():
    stats = reporting_service.sales_statistics()
    return jsonify({product_id: s.to_dict() for product_id, s in stats.items()}), 200


@reports_bp.get("/inventory")
@require_admin
def inventory():
    return jsonify(reporting_service.inventory_report()), 200
