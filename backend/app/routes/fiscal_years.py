# Overview: Flask API routes for fiscal years; create, edit, close and reopen accounting periods.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_tenant
from ..services import fiscal_service
from ..services.errors import PostingError


fiscal_years_bp = Blueprint("fiscal_years", __name__, url_prefix="/api/fiscal-years")


@fiscal_years_bp.get("/")
@require_tenant
def list_fiscal_years_route():
    years = fiscal_service.list_fiscal_years(g.org_id)
    return jsonify({"fiscal_years": [fy.to_dict() for fy in years]}), 200


@fiscal_years_bp.post("/")
@require_tenant
def create_fiscal_year_route():
    """Body: name, start_date, end_date (YYYY-MM-DD)."""
    try:
        data = request.get_json(silent=True) or {}
        fiscal_year = fiscal_service.create_fiscal_year(
            g.org_id,
            data.get("name"),
            data.get("start_date"),
            data.get("end_date"),
        )
        return jsonify({"fiscal_year": fiscal_year.to_dict()}), 201
    except PostingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create fiscal year")
        return jsonify({"error": "Internal server error"}), 500


@fiscal_years_bp.patch("/<int:fiscal_year_id>")
@require_tenant
def update_fiscal_year_route(fiscal_year_id: int):
    try:
        data = request.get_json(silent=True) or {}
        fiscal_year = fiscal_service.update_fiscal_year(
            g.org_id,
            fiscal_year_id,
            name=data.get("name"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
        )
        return jsonify({"fiscal_year": fiscal_year.to_dict()}), 200
    except PostingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update fiscal year")
        return jsonify({"error": "Internal server error"}), 500


@fiscal_years_bp.post("/<int:fiscal_year_id>/close")
@require_tenant
def close_fiscal_year_route(fiscal_year_id: int):
    try:
        fiscal_year = fiscal_service.close_fiscal_year(
            g.org_id, fiscal_year_id, actor_user_id=g.current_user_id
        )
        return jsonify({"fiscal_year": fiscal_year.to_dict()}), 200
    except PostingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close fiscal year")
        return jsonify({"error": "Internal server error"}), 500


@fiscal_years_bp.post("/<int:fiscal_year_id>/reopen")
@require_tenant
def reopen_fiscal_year_route(fiscal_year_id: int):
    try:
        fiscal_year = fiscal_service.reopen_fiscal_year(g.org_id, fiscal_year_id)
        return jsonify({"fiscal_year": fiscal_year.to_dict()}), 200
    except PostingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reopen fiscal year")
        return jsonify({"error": "Internal server error"}), 500
