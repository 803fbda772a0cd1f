"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every call is scoped to a tenant (organization), and references from
client input (branch, store, item) must resolve inside that tenant.

SECURITY INVARIANTS:
1. Every request handled by a tenant route has g.org_id set
2. IDs from client input are validated against the org before use
3. A row belonging to another org is reported exactly like a missing row
   (NotFound), so its existence is never revealed

USAGE:
    from app.services.tenant_service import require_store_in_org

    store = require_store_in_org(store_id, g.org_id)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Branch, Item, Organization, Store
from .errors import NotFound, ValidationFailed


def _log_cross_tenant_attempt(reason: str, org_id: int) -> None:
    current_app.logger.warning("Cross-tenant reference denied (org %s): %s", org_id, reason)


def require_org(org_id: int) -> Organization:
    """Organization must exist and be active."""
    org = db.session.get(Organization, org_id) if org_id else None
    if org is None:
        raise NotFound("Organization not found", details={"org_id": org_id})
    if not org.is_active:
        raise ValidationFailed("Organization is not active", details={"org_id": org_id})
    return org


def require_branch_in_org(branch_id: int, org_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id) if branch_id else None
    if branch is None:
        raise NotFound("Branch not found", details={"branch_id": branch_id})
    if branch.org_id != org_id:
        _log_cross_tenant_attempt(f"Branch {branch_id} belongs to org {branch.org_id}", org_id)
        raise NotFound("Branch not found", details={"branch_id": branch_id})
    return branch


def require_store_in_org(store_id: int, org_id: int) -> Store:
    store = db.session.get(Store, store_id) if store_id else None
    if store is None:
        raise NotFound("Store not found", details={"store_id": store_id})
    if store.org_id != org_id:
        _log_cross_tenant_attempt(f"Store {store_id} belongs to org {store.org_id}", org_id)
        raise NotFound("Store not found", details={"store_id": store_id})
    return store


def require_items_in_org(item_ids, org_id: int) -> dict[int, Item]:
    """
    Load every referenced item, scoped to the org.

    Returns {item_id: Item}. Any id that is missing or foreign raises
    NotFound listing the offending ids.
    """
    wanted = set(item_ids)
    if not wanted:
        return {}
    items = (
        db.session.query(Item)
        .filter(Item.org_id == org_id, Item.id.in_(wanted))
        .all()
    )
    found = {item.id: item for item in items}
    missing = sorted(wanted - set(found))
    if missing:
        raise NotFound("Item not found", details={"item_ids": missing})
    return found
