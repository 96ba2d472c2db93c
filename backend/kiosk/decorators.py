# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_admin(f):
    """
    Require the admin API token.

    The kiosk endpoints (product listing, checkout, product requests) are
    public. Everything that edits the catalog, customers, transactions or
    balances carries `Authorization: Bearer <ADMIN_API_TOKEN>`.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Token does not match
    - ADMIN_API_TOKEN is not configured (admin API disabled)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_API_TOKEN")
        token = _bearer_token()

        if not token:
            return jsonify({"error": "Authentication required"}), 401

        if not expected or not hmac.compare_digest(token.encode(), str(expected).encode()):
            current_app.logger.warning(
                "Rejected admin request %s %s from %s", request.method, request.path, request.remote_addr
            )
            return jsonify({"error": "Invalid or expired token"}), 401

        return f(*args, **kwargs)

    return decorated_function
