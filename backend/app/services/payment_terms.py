# Overview: Payment terms of a posted document as a tagged union; parsing, storage and impact dispatch.

"""
Payment terms

A document is paid either in cash (into/out of a safe, a bank, or a split
of both) or on credit (against a customer/supplier running balance). The
request/DB shape is a cluster of nullable fields; inside the services it is
always one of:

    CashTerms(target)        target = SafeTarget | BankTarget | SplitTarget
    CreditTerms(party_id)

so "credit never links a cash account" and "cash never moves a partner
balance" hold by construction. apply_terms()/reverse_terms() are the only
places that pick between the cash impact engine and the partner balance.

Request shape:
    {"payment_method": "cash",
     "payment_target": {"type": "safe"}                       # branch safe
                     | {"type": "safe", "safe_id": 3}
                     | {"type": "bank", "bank_id": 7}
                     | {"type": "split", "safe_id": 3, "bank_id": 7,
                        "cash_amount_cents": 500, "bank_amount_cents": 650}}
    {"payment_method": "credit", "counter_party_id": 12}
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from . import accounting_service, partner_balance_service
from .accounting_service import BankTarget, SafeTarget
from .errors import ValidationFailed
from ..validation import coerce_int

METHOD_CASH = "cash"
METHOD_CREDIT = "credit"
PAYMENT_METHODS = (METHOD_CASH, METHOD_CREDIT)

PAYMENT_FIELDS = ("payment_method", "payment_target", "counter_party_id")


@dataclass(frozen=True)
class SplitTarget:
    safe: SafeTarget
    bank: BankTarget
    cash_amount_cents: int
    bank_amount_cents: int


@dataclass(frozen=True)
class CashTerms:
    target: Union[SafeTarget, BankTarget, SplitTarget]
    # Shown on the document only; its balance is never touched
    counter_party_id: int | None = None


@dataclass(frozen=True)
class CreditTerms:
    party_id: int


PaymentTerms = Union[CashTerms, CreditTerms]


def _optional_id(value, field: str) -> int | None:
    if value in (None, ""):
        return None
    parsed = coerce_int(value, field)
    if parsed <= 0:
        raise ValidationFailed(f"{field} must be positive", details={"field": field})
    return parsed


def _amount(value, field: str) -> int:
    if value is None:
        raise ValidationFailed(f"{field} is required for split payments", details={"field": field})
    parsed = coerce_int(value, field)
    if parsed < 0:
        raise ValidationFailed(f"{field} cannot be negative", details={"field": field})
    return parsed


def _parse_target(raw, *, branch_id: int):
    if not isinstance(raw, dict):
        raise ValidationFailed("payment_target is required for cash payments")

    safe_id = _optional_id(raw.get("safe_id"), "safe_id")
    bank_id = _optional_id(raw.get("bank_id"), "bank_id")
    target_type = raw.get("type")
    if target_type is None:
        # Infer from the single id supplied
        if safe_id and bank_id:
            raise ValidationFailed("payment_target must name either a safe or a bank, not both")
        target_type = "bank" if bank_id else "safe"

    if target_type == "safe":
        if bank_id:
            raise ValidationFailed("A safe payment cannot name a bank")
        return SafeTarget(branch_id=branch_id, safe_id=safe_id)

    if target_type == "bank":
        if safe_id:
            raise ValidationFailed("A bank payment cannot name a safe")
        if not bank_id:
            raise ValidationFailed("bank_id is required for bank payments")
        return BankTarget(bank_id=bank_id)

    if target_type == "split":
        if not bank_id:
            raise ValidationFailed("bank_id is required for split payments")
        return SplitTarget(
            safe=SafeTarget(branch_id=branch_id, safe_id=safe_id),
            bank=BankTarget(bank_id=bank_id),
            cash_amount_cents=_amount(raw.get("cash_amount_cents"), "cash_amount_cents"),
            bank_amount_cents=_amount(raw.get("bank_amount_cents"), "bank_amount_cents"),
        )

    raise ValidationFailed(
        "payment_target.type must be one of: safe, bank, split",
        details={"type": target_type},
    )


def parse_terms(data: dict, *, branch_id: int) -> PaymentTerms:
    """Build PaymentTerms from request fields. Raises ValidationFailed on a malformed shape."""
    method = (data.get("payment_method") or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationFailed(
            "payment_method must be 'cash' or 'credit'",
            details={"payment_method": data.get("payment_method")},
        )

    party_id = _optional_id(data.get("counter_party_id"), "counter_party_id")

    if method == METHOD_CREDIT:
        if party_id is None:
            raise ValidationFailed("counter_party_id is required for credit payments")
        if data.get("payment_target"):
            raise ValidationFailed("Credit payments cannot carry a payment_target")
        return CreditTerms(party_id=party_id)

    return CashTerms(target=_parse_target(data.get("payment_target"), branch_id=branch_id), counter_party_id=party_id)


def terms_from_document(doc) -> PaymentTerms:
    """Rebuild the terms a document was posted with from its stored columns."""
    if doc.payment_method == METHOD_CREDIT:
        return CreditTerms(party_id=doc.counter_party_id)

    if doc.payment_target_type == "split":
        target = SplitTarget(
            safe=SafeTarget(branch_id=doc.branch_id, safe_id=doc.safe_id),
            bank=BankTarget(bank_id=doc.bank_id),
            cash_amount_cents=doc.split_cash_cents or 0,
            bank_amount_cents=doc.split_bank_cents or 0,
        )
    elif doc.payment_target_type == "bank":
        target = BankTarget(bank_id=doc.bank_id)
    else:
        target = SafeTarget(branch_id=doc.branch_id, safe_id=doc.safe_id)
    return CashTerms(target=target, counter_party_id=doc.counter_party_id)


def merge_patch(doc, patch: dict) -> dict:
    """
    Payment fields for an update: the patch laid over the stored document.

    A stored cash target only carries over while the method stays cash, so
    switching credit -> cash must name a target and switching cash -> credit
    must name (or already have) a counter-party.
    """
    stored_method = doc.payment_method
    method = patch.get("payment_method", stored_method)

    if "payment_target" in patch:
        target = patch["payment_target"]
    elif method == stored_method == METHOD_CASH:
        target = doc.payment_target_dict()
    else:
        target = None

    party_id = patch.get("counter_party_id", doc.counter_party_id)
    return {"payment_method": method, "payment_target": target, "counter_party_id": party_id}


def check_split_balance(terms: PaymentTerms, net_cents: int, *, tolerance_cents: int) -> None:
    """A split must cover the document net to within the tolerance."""
    if not isinstance(terms, CashTerms) or not isinstance(terms.target, SplitTarget):
        return
    target = terms.target
    paid = target.cash_amount_cents + target.bank_amount_cents
    if abs(paid - net_cents) > tolerance_cents:
        raise ValidationFailed(
            "Split payment amounts must add up to the document net",
            details={
                "cash_amount_cents": target.cash_amount_cents,
                "bank_amount_cents": target.bank_amount_cents,
                "net_cents": net_cents,
            },
        )


def resolve_terms(kind: str, terms: PaymentTerms, *, org_id: int) -> PaymentTerms:
    """
    Check every reference in `terms` resolves inside the tenant and pin the
    branch safe to a concrete safe id, so later reversal hits the same row.
    """
    if isinstance(terms, CreditTerms):
        partner_balance_service.get_party(kind, terms.party_id, org_id=org_id)
        return terms

    if terms.counter_party_id is not None:
        partner_balance_service.get_party(kind, terms.counter_party_id, org_id=org_id)

    target = terms.target
    if isinstance(target, SafeTarget):
        safe = accounting_service.resolve_safe(org_id, target)
        return replace(terms, target=replace(target, safe_id=safe.id))
    if isinstance(target, BankTarget):
        accounting_service.resolve_bank(org_id, target)
        return terms

    safe = accounting_service.resolve_safe(org_id, target.safe)
    accounting_service.resolve_bank(org_id, target.bank)
    return replace(terms, target=replace(target, safe=replace(target.safe, safe_id=safe.id)))


def store_terms(doc, terms: PaymentTerms) -> None:
    """Write `terms` onto the document columns, clearing whatever the other shape used."""
    doc.safe_id = None
    doc.bank_id = None
    doc.split_cash_cents = None
    doc.split_bank_cents = None
    doc.payment_target_type = None

    if isinstance(terms, CreditTerms):
        doc.payment_method = METHOD_CREDIT
        doc.counter_party_id = terms.party_id
        return

    doc.payment_method = METHOD_CASH
    doc.counter_party_id = terms.counter_party_id
    target = terms.target
    if isinstance(target, SafeTarget):
        doc.payment_target_type = "safe"
        doc.safe_id = target.safe_id
    elif isinstance(target, BankTarget):
        doc.payment_target_type = "bank"
        doc.bank_id = target.bank_id
    else:
        doc.payment_target_type = "split"
        doc.safe_id = target.safe.safe_id
        doc.bank_id = target.bank.bank_id
        doc.split_cash_cents = target.cash_amount_cents
        doc.split_bank_cents = target.bank_amount_cents


def _cash_parts(target, amount_cents: int):
    if isinstance(target, SplitTarget):
        return [
            (target.safe, target.cash_amount_cents),
            (target.bank, target.bank_amount_cents),
        ]
    return [(target, amount_cents)]


def ensure_funds(kind: str, terms: PaymentTerms, amount_cents: int, *, org_id: int) -> None:
    """Fail with InsufficientFunds before a safe is debited below zero."""
    if isinstance(terms, CreditTerms):
        return
    for target, part in _cash_parts(terms.target, amount_cents):
        accounting_service.ensure_sufficient_funds(kind, part, target, org_id=org_id)


def apply_terms(kind: str, terms: PaymentTerms, amount_cents: int, *, org_id: int) -> None:
    """Apply the one financial impact `terms` call for: cash accounts or the partner, never both."""
    if isinstance(terms, CreditTerms):
        partner_balance_service.apply_partner_impact(kind, amount_cents, terms.party_id, org_id=org_id)
        return
    for target, part in _cash_parts(terms.target, amount_cents):
        accounting_service.apply_impact(kind, part, target, org_id=org_id)


def reverse_terms(kind: str, terms: PaymentTerms, amount_cents: int, *, org_id: int) -> None:
    if isinstance(terms, CreditTerms):
        partner_balance_service.reverse_partner_impact(kind, amount_cents, terms.party_id, org_id=org_id)
        return
    for target, part in _cash_parts(terms.target, amount_cents):
        accounting_service.reverse_impact(kind, part, target, org_id=org_id)
