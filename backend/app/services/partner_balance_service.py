# Overview: Running-balance mutation for trading partners on credit-method documents.

"""
Trading partner balances

Credit documents do not go through the cash impact engine. They move the
counter-party's running balance instead:

- sales family     -> Customer.current_balance_cents (what the customer owes us)
    sales-invoice +amount, sales-return -amount
- purchases family -> Supplier.current_balance_cents (what we owe the supplier)
    purchase-invoice +amount, purchase-return -amount

Reversal applies the other kind of the same family, so apply + reverse
is zero. Same atomic-increment rule as cash accounts.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Customer, Supplier
from .accounting_service import (
    KIND_SALES_INVOICE,
    KIND_SALES_RETURN,
    KIND_PURCHASE_INVOICE,
    KIND_PURCHASE_RETURN,
    inverse,
)
from .errors import NotFound, ValidationFailed

_PARTY_MODELS = {
    KIND_SALES_INVOICE: Customer,
    KIND_SALES_RETURN: Customer,
    KIND_PURCHASE_INVOICE: Supplier,
    KIND_PURCHASE_RETURN: Supplier,
}

_PARTY_SIGNS = {
    KIND_SALES_INVOICE: 1,
    KIND_SALES_RETURN: -1,
    KIND_PURCHASE_INVOICE: 1,
    KIND_PURCHASE_RETURN: -1,
}


def party_model_for(kind: str):
    if kind not in _PARTY_MODELS:
        raise ValidationFailed(f"Unknown document kind: {kind}")
    return _PARTY_MODELS[kind]


def party_sign_for(kind: str) -> int:
    party_model_for(kind)
    return _PARTY_SIGNS[kind]


def get_party(kind: str, party_id: int, *, org_id: int):
    """Load the customer/supplier for `kind` inside the tenant, or raise NotFound."""
    model = party_model_for(kind)
    party = db.session.query(model).filter(model.org_id == org_id, model.id == party_id).first()
    if party is None:
        raise NotFound(
            f"{model.__name__} not found",
            details={"counter_party_id": party_id},
        )
    return party


def apply_partner_impact(kind: str, amount_cents: int, party_id: int, *, org_id: int) -> int:
    """Move the partner balance for a credit document. Returns the delta written."""
    sign = party_sign_for(kind)
    if amount_cents == 0:
        return 0

    model = party_model_for(kind)
    get_party(kind, party_id, org_id=org_id)

    delta = sign * amount_cents
    db.session.execute(
        update(model)
        .where(model.id == party_id)
        .values(current_balance_cents=model.current_balance_cents + delta)
        .execution_options(synchronize_session=False)
    )
    return delta


def reverse_partner_impact(kind: str, amount_cents: int, party_id: int, *, org_id: int) -> int:
    return apply_partner_impact(inverse(kind), amount_cents, party_id, org_id=org_id)
