# Overview: Flask API routes for posted documents; one blueprint per document kind.

# backend/app/routes/documents.py
"""
Document API routes.

The four kinds share one set of handlers; make_document_blueprint() binds
them to a kind and a URL prefix:

    /api/sales-invoices      sales-invoice
    /api/sales-returns       sales-return
    /api/purchase-invoices   purchase-invoice
    /api/purchase-returns    purchase-return
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_tenant
from ..services import posting_service
from ..services.accounting_service import (
    KIND_SALES_INVOICE,
    KIND_SALES_RETURN,
    KIND_PURCHASE_INVOICE,
    KIND_PURCHASE_RETURN,
)
from ..services.errors import PostingError


def _error_response(e: PostingError):
    return jsonify(e.to_dict()), e.status_code


def make_document_blueprint(kind: str, name: str, url_prefix: str) -> Blueprint:
    bp = Blueprint(name, __name__, url_prefix=url_prefix)

    @bp.post("/")
    @require_tenant
    def create_document_route():
        """Post a new document. Body: branch_id, lines, payment fields, optional date/store_id/discount."""
        try:
            data = request.get_json(silent=True) or {}
            doc = posting_service.create_document(kind, g.org_id, data, actor_user_id=g.current_user_id)
            return jsonify({"document": doc.to_dict()}), 201
        except PostingError as e:
            return _error_response(e)
        except Exception:
            current_app.logger.exception("Failed to create %s", kind)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/")
    @require_tenant
    def list_documents_route():
        try:
            docs, total = posting_service.list_documents(
                kind,
                g.org_id,
                search=request.args.get("search"),
                date_from=request.args.get("date_from"),
                date_to=request.args.get("date_to"),
                branch_id=request.args.get("branch_id", type=int),
                limit=request.args.get("limit", default=100, type=int),
                offset=request.args.get("offset", default=0, type=int),
            )
            return jsonify({"documents": [d.to_dict() for d in docs], "total": total}), 200
        except PostingError as e:
            return _error_response(e)
        except Exception:
            current_app.logger.exception("Failed to list %s", kind)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/<int:document_id>")
    @require_tenant
    def get_document_route(document_id: int):
        try:
            doc = posting_service.get_document(kind, g.org_id, document_id)
            return jsonify({"document": doc.to_dict()}), 200
        except PostingError as e:
            return _error_response(e)
        except Exception:
            current_app.logger.exception("Failed to load %s", kind)
            return jsonify({"error": "Internal server error"}), 500

    @bp.patch("/<int:document_id>")
    @require_tenant
    def update_document_route(document_id: int):
        """Reverse the stored posting and re-post with the patched content."""
        try:
            patch = request.get_json(silent=True) or {}
            doc = posting_service.update_document(
                kind, g.org_id, document_id, patch, actor_user_id=g.current_user_id
            )
            return jsonify({"document": doc.to_dict()}), 200
        except PostingError as e:
            return _error_response(e)
        except Exception:
            current_app.logger.exception("Failed to update %s", kind)
            return jsonify({"error": "Internal server error"}), 500

    @bp.delete("/<int:document_id>")
    @require_tenant
    def delete_document_route(document_id: int):
        try:
            snapshot = posting_service.delete_document(
                kind, g.org_id, document_id, actor_user_id=g.current_user_id
            )
            return jsonify({"deleted": True, "document": snapshot}), 200
        except PostingError as e:
            return _error_response(e)
        except Exception:
            current_app.logger.exception("Failed to delete %s", kind)
            return jsonify({"error": "Internal server error"}), 500

    return bp


sales_invoices_bp = make_document_blueprint(KIND_SALES_INVOICE, "sales_invoices", "/api/sales-invoices")
sales_returns_bp = make_document_blueprint(KIND_SALES_RETURN, "sales_returns", "/api/sales-returns")
purchase_invoices_bp = make_document_blueprint(KIND_PURCHASE_INVOICE, "purchase_invoices", "/api/purchase-invoices")
purchase_returns_bp = make_document_blueprint(KIND_PURCHASE_RETURN, "purchase_returns", "/api/purchase-returns")

document_blueprints = (
    sales_invoices_bp,
    sales_returns_bp,
    purchase_invoices_bp,
    purchase_returns_bp,
)
