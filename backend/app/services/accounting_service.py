# Overview: Accounting impact engine; applies and reverses signed cash-account deltas.

"""
Cash Impact Invariants (authoritative)

- A posted cash document moves exactly one signed delta per cash account it
  names (a split payment names a safe and a bank, each with its own part).
- delta = sign_for(kind) * amount
    sales-invoice  +1   money comes in
    sales-return   -1   money goes out (refund)
    purchase-invoice -1 money goes out
    purchase-return  +1 money comes back
- reverse_impact(kind) == apply_impact(inverse(kind)); the inverse of an
  invoice is the return of the same family and vice versa, so
  apply + reverse nets to exactly zero.
- Zero amounts are skipped (no zero-delta writes).
- The balance column is only changed by one UPDATE ... SET balance =
  balance + :delta statement, never read-modify-write in Python.
- Sufficiency is NOT checked here. Callers that debit a safe call
  ensure_sufficient_funds() first, inside the same transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update

from ..extensions import db
from ..models import Safe, Bank
from .concurrency import lock_for_update
from .errors import InsufficientFunds, NotFound, ValidationFailed


# =============================================================================
# DOCUMENT KINDS (CONSTANTS)
# =============================================================================

KIND_SALES_INVOICE = "sales-invoice"
KIND_SALES_RETURN = "sales-return"
KIND_PURCHASE_INVOICE = "purchase-invoice"
KIND_PURCHASE_RETURN = "purchase-return"

KINDS = (
    KIND_SALES_INVOICE,
    KIND_SALES_RETURN,
    KIND_PURCHASE_INVOICE,
    KIND_PURCHASE_RETURN,
)

_SIGNS = {
    KIND_SALES_INVOICE: 1,
    KIND_SALES_RETURN: -1,
    KIND_PURCHASE_INVOICE: -1,
    KIND_PURCHASE_RETURN: 1,
}

_INVERSES = {
    KIND_SALES_INVOICE: KIND_SALES_RETURN,
    KIND_SALES_RETURN: KIND_SALES_INVOICE,
    KIND_PURCHASE_INVOICE: KIND_PURCHASE_RETURN,
    KIND_PURCHASE_RETURN: KIND_PURCHASE_INVOICE,
}


def _require_kind(kind: str) -> None:
    if kind not in _SIGNS:
        raise ValidationFailed(f"Unknown document kind: {kind}")


def sign_for(kind: str) -> int:
    _require_kind(kind)
    return _SIGNS[kind]


def inverse(kind: str) -> str:
    """Kind whose impact cancels `kind`'s impact."""
    _require_kind(kind)
    return _INVERSES[kind]


# =============================================================================
# CASH TARGETS
# =============================================================================

@dataclass(frozen=True)
class SafeTarget:
    """A safe. safe_id=None means "the safe of the document's branch"."""
    branch_id: int | None = None
    safe_id: int | None = None


@dataclass(frozen=True)
class BankTarget:
    bank_id: int


def resolve_safe(org_id: int, target: SafeTarget, *, lock: bool = False) -> Safe:
    query = db.session.query(Safe).filter(Safe.org_id == org_id)
    if target.safe_id:
        query = query.filter(Safe.id == target.safe_id)
    elif target.branch_id:
        query = query.filter(Safe.branch_id == target.branch_id)
    else:
        raise ValidationFailed("Either safe_id or branch_id is required for safe payments")
    if lock:
        query = lock_for_update(query)
    safe = query.first()
    if safe is None:
        if target.safe_id:
            raise NotFound("Safe not found", details={"safe_id": target.safe_id})
        raise NotFound("No safe is linked to this branch", details={"branch_id": target.branch_id})
    return safe


def resolve_bank(org_id: int, target: BankTarget, *, lock: bool = False) -> Bank:
    if not target.bank_id:
        raise ValidationFailed("bank_id is required for bank payments")
    query = db.session.query(Bank).filter(Bank.org_id == org_id, Bank.id == target.bank_id)
    if lock:
        query = lock_for_update(query)
    bank = query.first()
    if bank is None:
        raise NotFound("Bank not found", details={"bank_id": target.bank_id})
    return bank


def _increment(model, row_id: int, delta: int) -> None:
    db.session.execute(
        update(model)
        .where(model.id == row_id)
        .values(current_balance_cents=model.current_balance_cents + delta)
        .execution_options(synchronize_session=False)
    )


# =============================================================================
# APPLY / REVERSE
# =============================================================================

def apply_impact(kind: str, amount_cents: int, target, *, org_id: int) -> int:
    """
    Apply the cash impact of `kind` for `amount_cents` to `target`.

    Returns the signed delta written (0 when skipped). Does not commit.
    """
    sign = sign_for(kind)
    if amount_cents == 0:
        return 0

    delta = sign * amount_cents

    if isinstance(target, SafeTarget):
        safe = resolve_safe(org_id, target)
        _increment(Safe, safe.id, delta)
    elif isinstance(target, BankTarget):
        bank = resolve_bank(org_id, target)
        _increment(Bank, bank.id, delta)
    else:
        raise ValidationFailed(f"Unsupported payment target: {target!r}")

    return delta


def reverse_impact(kind: str, amount_cents: int, target, *, org_id: int) -> int:
    """Exact inverse of apply_impact(kind, amount_cents, target)."""
    return apply_impact(inverse(kind), amount_cents, target, org_id=org_id)


def ensure_sufficient_funds(kind: str, amount_cents: int, target, *, org_id: int) -> None:
    """
    Fail fast when a debit would take a safe below zero.

    Only safes are guarded (banks may be overdrawn). The safe row is locked
    so the balance read here is still true when the debit is written.
    Call this after any reversal of the same document, so a refund of the
    old amount is already visible.
    """
    if sign_for(kind) >= 0 or amount_cents <= 0:
        return
    if not isinstance(target, SafeTarget):
        return

    safe = resolve_safe(org_id, target, lock=True)
    db.session.refresh(safe)
    if safe.current_balance_cents < amount_cents:
        raise InsufficientFunds(
            "Insufficient balance in safe",
            details={
                "safe_id": safe.id,
                "available_cents": safe.current_balance_cents,
                "requested_cents": amount_cents,
            },
        )
