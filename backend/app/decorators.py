# Overview: Request decorators for API routes; establishes tenant context from gateway headers.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import Organization


def _header_int(name: str):
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def require_tenant(f):
    """
    Establish tenant context.

    Authentication happens upstream; the gateway forwards the caller's
    organization and user as headers.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.current_user_id: The acting user ID (may be None)

    Returns 401 if X-Org-Id is missing or malformed, 403 if the
    organization does not exist or is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_id = _header_int("X-Org-Id")
        if org_id is None:
            return jsonify({"error": "Tenant context required (X-Org-Id)"}), 401

        org = db.session.get(Organization, org_id)
        if org is None or not org.is_active:
            return jsonify({"error": "Organization not available"}), 403

        g.org_id = org_id
        g.current_user_id = _header_int("X-User-Id")

        return f(*args, **kwargs)

    return decorated_function
