# Overview: Document posting protocol; create/update/delete with reverse-then-reapply side effects.

"""
Document Posting Service

WHY: Sales invoices, sales returns, purchase invoices and purchase returns
all post the same way. Each one recomputes its totals, moves stock for
STOCKED lines and applies exactly one financial impact (a cash account or
the trading partner's running balance). One protocol, parameterized by
DocumentKindDescriptor, serves all four kinds.

POSTING INVARIANTS:
- Every mutation runs in ONE transaction; any failure rolls back the
  document row, its lines, its stock movements and every balance change.
- update = reverse the full stored effect, then apply the full new effect.
  Nothing is ever posted as a difference.
- Reversal always uses the STORED lines, terms and net, never values
  recomputed from the request.
- Credit documents move the partner balance only; cash documents move
  cash accounts only (see payment_terms).
- Outgoing kinds never take stock below zero unless the document was
  created with allow_insufficient_stock.
- The fiscal period must be open for the document date at every mutation
  (and for the stored date too when an update moves the date).
- The code is allocated once at create and never changes.
- Audit rows are written after commit; an audit failure never undoes a
  posting.

ORDER INSIDE THE TRANSACTION:
    create: code -> stock check -> funds check -> persist -> stock -> impact
    update: reverse stock -> reverse impact -> stock check -> funds check
            -> persist -> stock -> impact
    delete: reverse stock -> reverse impact -> delete row
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentLine, FinancialDocument
from app.time_utils import parse_business_date, today
from ..validation import coerce_bool, coerce_int
from . import audit_service, fiscal_service, payment_terms, stock_movement_service, tenant_service
from .concurrency import lock_for_update, run_in_transaction
from .document_kinds import DocumentKindDescriptor, get_descriptor
from .document_service import next_document_code
from .errors import Conflict, NotFound, ValidationFailed
from .totals_service import DocumentTotals, LineInput, compute_totals

IMMUTABLE_FIELDS = ("id", "kind", "code", "org_id", "allow_insufficient_stock")


# =============================================================================
# INPUT PARSING
# =============================================================================

def _to_int(value, field: str, *, default=None) -> int:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationFailed(f"{field} is required", details={"field": field})
    return coerce_int(value, field)


def _parse_date(value) -> date:
    try:
        parsed = parse_business_date(value)
    except ValueError:
        raise ValidationFailed("date must be an ISO date (YYYY-MM-DD)", details={"date": value})
    return parsed or today()


def _raw_lines(raw) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationFailed("At least one line item is required")
    for line in raw:
        if not isinstance(line, dict):
            raise ValidationFailed("Each line item must be an object")
    return raw


def _build_line_inputs(descriptor: DocumentKindDescriptor, raw_lines: list[dict], items: dict) -> list[LineInput]:
    """
    Turn request lines into LineInput. A line without unit_price_cents
    takes the item's sale price (sales family) or purchase price (purchases).
    """
    inputs = []
    for index, raw in enumerate(raw_lines):
        item_id = _to_int(raw.get("item_id"), f"lines[{index}].item_id")
        item = items[item_id]

        price = raw.get("unit_price_cents")
        if price is None:
            price = item.sale_price_cents if descriptor.party_role == "customer" else item.purchase_price_cents
            if price is None:
                raise ValidationFailed(
                    f"lines[{index}].unit_price_cents is required (item has no default price)",
                    details={"item_id": item_id},
                )

        inputs.append(LineInput(
            item_id=item_id,
            quantity=_to_int(raw.get("quantity"), f"lines[{index}].quantity"),
            unit_price_cents=_to_int(price, f"lines[{index}].unit_price_cents"),
            tax_inclusive=coerce_bool(raw.get("tax_inclusive"), f"lines[{index}].tax_inclusive"),
        ))
    return inputs


def _line_item_ids(raw_lines: list[dict]) -> list[int]:
    return [_to_int(line.get("item_id"), f"lines[{i}].item_id") for i, line in enumerate(raw_lines)]


def _resolve_location(org_id: int, branch_id, store_id):
    branch = tenant_service.require_branch_in_org(_to_int(branch_id, "branch_id"), org_id)
    store = None
    if store_id not in (None, ""):
        store = tenant_service.require_store_in_org(_to_int(store_id, "store_id"), org_id)
        if store.branch_id is not None and store.branch_id != branch.id:
            raise ValidationFailed(
                "Store does not belong to the document branch",
                details={"store_id": store.id, "branch_id": branch.id},
            )
    return branch, store


def _compute(org, line_inputs: list[LineInput], discount_cents: int) -> DocumentTotals:
    return compute_totals(
        line_inputs,
        vat_enabled=org.is_vat_enabled,
        tax_rate_bps=org.vat_rate_bps,
        discount_cents=discount_cents,
    )


def _split_tolerance() -> int:
    return current_app.config.get("SPLIT_PAYMENT_TOLERANCE_CENTS", 1)


# =============================================================================
# PERSISTENCE HELPERS
# =============================================================================

def _write_totals(doc: FinancialDocument, totals: DocumentTotals) -> None:
    doc.subtotal_cents = totals.subtotal_cents
    doc.discount_cents = totals.discount_cents
    doc.tax_cents = totals.tax_cents
    doc.net_cents = totals.net_cents
    doc.lines = [
        DocumentLine(
            position=position,
            item_id=line.item_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            tax_inclusive=line.tax_inclusive,
            net_cents=line.net_cents,
            tax_cents=line.tax_cents,
            line_total_cents=line.line_total_cents,
        )
        for position, line in enumerate(totals.lines, start=1)
    ]


def _load_for_update(descriptor: DocumentKindDescriptor, org_id: int, document_id: int) -> FinancialDocument:
    model = descriptor.model
    query = db.session.query(model).filter(model.id == document_id, model.org_id == org_id)
    doc = lock_for_update(query).populate_existing().first()
    if doc is None:
        raise NotFound(f"{descriptor.label} not found", details={"id": document_id})
    return doc


def _apply_effects(descriptor, doc, terms, quantities) -> None:
    stock_movement_service.apply_stock(
        descriptor,
        document_id=doc.id,
        code=doc.code,
        store_id=doc.store_id,
        quantities=quantities,
    )
    payment_terms.apply_terms(descriptor.kind, terms, doc.net_cents, org_id=doc.org_id)


def _reverse_effects(descriptor, doc, items: dict) -> None:
    """
    Undo the stored effect of `doc`.

    Store-aware documents reverse what their ledger rows hold; store-less
    ones reverse from the stored lines. Cash and partner impact come from the
    stored terms and stored net.
    """
    if doc.store_id is not None:
        quantities = stock_movement_service.posted_quantities(
            descriptor, document_id=doc.id, store_id=doc.store_id,
        )
    else:
        quantities = stock_movement_service.stocked_quantities(doc.lines, items)
    stock_movement_service.reverse_stock(
        descriptor,
        document_id=doc.id,
        code=doc.code,
        store_id=doc.store_id,
        quantities=quantities,
    )
    payment_terms.reverse_terms(
        descriptor.kind,
        payment_terms.terms_from_document(doc),
        doc.net_cents,
        org_id=doc.org_id,
    )


def _check_before_apply(descriptor, org_id, store_id, quantities, allow_insufficient, terms, net_cents) -> None:
    stock_movement_service.ensure_available(
        descriptor,
        org_id=org_id,
        store_id=store_id,
        quantities=quantities,
        allow_insufficient=allow_insufficient,
    )
    if descriptor.debits_cash:
        payment_terms.ensure_funds(descriptor.kind, terms, net_cents, org_id=org_id)


# =============================================================================
# CREATE
# =============================================================================

def create_document(kind: str, org_id: int, data: dict, actor_user_id: int | None = None) -> FinancialDocument:
    """
    Post a new document of `kind`.

    Raises:
        ValidationFailed, NotFound, FiscalPeriodClosed, NoOpenPeriod,
        InsufficientStock, InsufficientFunds
    """
    descriptor = get_descriptor(kind)
    data = data or {}

    def _op() -> FinancialDocument:
        org = tenant_service.require_org(org_id)

        # 1. Validate
        raw_lines = _raw_lines(data.get("lines"))
        branch, store = _resolve_location(org_id, data.get("branch_id"), data.get("store_id"))
        terms = payment_terms.parse_terms(data, branch_id=branch.id)
        items = tenant_service.require_items_in_org(_line_item_ids(raw_lines), org_id)
        terms = payment_terms.resolve_terms(descriptor.kind, terms, org_id=org_id)

        # 2. Fiscal period
        doc_date = _parse_date(data.get("date"))
        fiscal_service.ensure_period_open(org_id, doc_date)

        # 3. Totals
        line_inputs = _build_line_inputs(descriptor, raw_lines, items)
        totals = _compute(org, line_inputs, _to_int(data.get("discount_cents"), "discount_cents", default=0))
        payment_terms.check_split_balance(terms, totals.net_cents, tolerance_cents=_split_tolerance())

        # 4. Post
        allow_insufficient = coerce_bool(data.get("allow_insufficient_stock"), "allow_insufficient_stock")
        quantities = stock_movement_service.stocked_quantities(line_inputs, items)
        code = next_document_code(
            org_id=org_id,
            document_type=descriptor.kind,
            prefix=descriptor.code_prefix,
        )
        _check_before_apply(
            descriptor, org_id, store.id if store else None,
            quantities, allow_insufficient, terms, totals.net_cents,
        )

        doc = descriptor.model(
            org_id=org_id,
            branch_id=branch.id,
            store_id=store.id if store else None,
            code=code,
            date=doc_date,
            allow_insufficient_stock=allow_insufficient,
            notes=data.get("notes"),
            created_by_user_id=actor_user_id,
            updated_by_user_id=actor_user_id,
        )
        payment_terms.store_terms(doc, terms)
        _write_totals(doc, totals)
        db.session.add(doc)
        db.session.flush()

        _apply_effects(descriptor, doc, terms, quantities)
        return doc

    doc = run_in_transaction(_op)

    audit_service.record(
        org_id, actor_user_id, audit_service.ACTION_CREATE, descriptor.kind, doc.id,
        f"{descriptor.label} {doc.code} created (net {doc.net_cents})",
    )
    return doc


# =============================================================================
# UPDATE
# =============================================================================

def update_document(
    kind: str,
    org_id: int,
    document_id: int,
    patch: dict,
    actor_user_id: int | None = None,
) -> FinancialDocument:
    """
    Replace a posted document's content: full reversal of the stored
    effect, then full application of the merged (stored + patch) state.
    """
    descriptor = get_descriptor(kind)
    patch = patch or {}

    for field in IMMUTABLE_FIELDS:
        if field in patch:
            raise ValidationFailed(f"{field} cannot be changed", details={"field": field})

    def _op() -> FinancialDocument:
        org = tenant_service.require_org(org_id)
        doc = _load_for_update(descriptor, org_id, document_id)

        # 1. Validate merged state
        if "lines" in patch:
            raw_lines = _raw_lines(patch["lines"])
        else:
            raw_lines = [
                {
                    "item_id": line.item_id,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                    "tax_inclusive": line.tax_inclusive,
                }
                for line in doc.lines
            ]

        branch, store = _resolve_location(
            org_id,
            patch.get("branch_id", doc.branch_id),
            patch.get("store_id", doc.store_id),
        )
        terms = payment_terms.parse_terms(payment_terms.merge_patch(doc, patch), branch_id=branch.id)

        old_item_ids = [line.item_id for line in doc.lines]
        items = tenant_service.require_items_in_org(_line_item_ids(raw_lines) + old_item_ids, org_id)
        terms = payment_terms.resolve_terms(descriptor.kind, terms, org_id=org_id)

        # 2. Fiscal period: the stored date must still be open, and so must the new one
        new_date = _parse_date(patch["date"]) if patch.get("date") else doc.date
        fiscal_service.ensure_period_open(org_id, doc.date)
        if new_date != doc.date:
            fiscal_service.ensure_period_open(org_id, new_date)

        # 3. Totals
        discount = _to_int(patch.get("discount_cents", doc.discount_cents), "discount_cents", default=0)
        line_inputs = _build_line_inputs(descriptor, raw_lines, items)
        totals = _compute(org, line_inputs, discount)
        payment_terms.check_split_balance(terms, totals.net_cents, tolerance_cents=_split_tolerance())

        # 4. Reverse stored effect
        _reverse_effects(descriptor, doc, items)

        # 5. Re-check against the new request, persist, apply
        quantities = stock_movement_service.stocked_quantities(line_inputs, items)
        new_store_id = store.id if store else None
        _check_before_apply(
            descriptor, org_id, new_store_id,
            quantities, doc.allow_insufficient_stock, terms, totals.net_cents,
        )

        doc.branch_id = branch.id
        doc.store_id = new_store_id
        doc.date = new_date
        if "notes" in patch:
            doc.notes = patch["notes"]
        doc.updated_by_user_id = actor_user_id
        payment_terms.store_terms(doc, terms)
        _write_totals(doc, totals)
        db.session.flush()

        _apply_effects(descriptor, doc, terms, quantities)
        return doc

    doc = run_in_transaction(_op)

    audit_service.record(
        org_id, actor_user_id, audit_service.ACTION_UPDATE, descriptor.kind, doc.id,
        f"{descriptor.label} {doc.code} updated (net {doc.net_cents})",
    )
    return doc


# =============================================================================
# DELETE
# =============================================================================

def delete_document(kind: str, org_id: int, document_id: int, actor_user_id: int | None = None) -> dict:
    """
    Reverse a document's effect and remove it (lines cascade).

    Returns the document as it was just before deletion.
    """
    descriptor = get_descriptor(kind)

    def _op() -> dict:
        doc = _load_for_update(descriptor, org_id, document_id)
        fiscal_service.ensure_period_open(org_id, doc.date)

        items = tenant_service.require_items_in_org([line.item_id for line in doc.lines], org_id)
        snapshot = doc.to_dict()

        _reverse_effects(descriptor, doc, items)

        db.session.delete(doc)
        try:
            db.session.flush()
        except IntegrityError:
            raise Conflict(
                f"{descriptor.label} is referenced by other records and cannot be deleted",
                details={"id": document_id},
            )
        return snapshot

    snapshot = run_in_transaction(_op)

    audit_service.record(
        org_id, actor_user_id, audit_service.ACTION_DELETE, descriptor.kind, document_id,
        f"{descriptor.label} {snapshot['code']} deleted",
    )
    return snapshot


# =============================================================================
# READ
# =============================================================================

def get_document(kind: str, org_id: int, document_id: int) -> FinancialDocument:
    descriptor = get_descriptor(kind)
    model = descriptor.model
    doc = db.session.query(model).filter(model.id == document_id, model.org_id == org_id).first()
    if doc is None:
        raise NotFound(f"{descriptor.label} not found", details={"id": document_id})
    return doc


def list_documents(
    kind: str,
    org_id: int,
    *,
    search: str | None = None,
    date_from=None,
    date_to=None,
    branch_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[FinancialDocument], int]:
    """
    Tenant-scoped listing, newest business date first.

    `search` matches the code or the notes (case-insensitive).
    Returns (page, total).
    """
    descriptor = get_descriptor(kind)
    model = descriptor.model
    query = db.session.query(model).filter(model.org_id == org_id)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(model.code.ilike(pattern), model.notes.ilike(pattern)))
    if branch_id:
        query = query.filter(model.branch_id == branch_id)

    try:
        start = parse_business_date(date_from)
        end = parse_business_date(date_to)
    except ValueError:
        raise ValidationFailed("date_from/date_to must be ISO dates (YYYY-MM-DD)")
    if start:
        query = query.filter(model.date >= start)
    if end:
        query = query.filter(model.date <= end)

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    total = query.count()
    docs = (
        query.order_by(model.date.desc(), model.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return docs, total
