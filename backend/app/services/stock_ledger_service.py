# Overview: Service-layer operations for the stock ledger; balances and movement primitives.

"""
Stock Ledger Invariants (authoritative)

- Store-aware stock is ledger-derived: on hand = SUM(quantity_delta) of
  StockMovement rows for (store, item). No mutable quantity column.
- Movements are append-only. Undoing a document appends REVERSAL rows that
  point at the same document; nothing is updated or deleted.
- Item.stock is the legacy tenant-wide aggregate. Every movement also moves
  it (atomic increment), and for documents without a store it is the only
  balance there is.
- Primitives here never commit; they run inside the caller's transaction.
"""

from __future__ import annotations

from sqlalchemy import func, or_, update

from ..extensions import db
from ..models import Item, Store, StoreItem, StockMovement
from app.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .errors import NotFound, ValidationFailed


def _ensure_item_in_org(org_id: int, item_id: int, *, lock: bool = False) -> Item:
    query = db.session.query(Item).filter(Item.org_id == org_id, Item.id == item_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    item = query.first()
    if item is None:
        raise NotFound("Item not found", details={"item_id": item_id})
    return item


def ensure_tracked(store_id: int, item_id: int, *, lock: bool = False) -> StoreItem:
    """
    Make sure (store, item) has a tracking row, optionally locking it.

    Locking this row serializes concurrent postings that touch the same
    store item between their balance check and their movement write.
    """
    query = db.session.query(StoreItem).filter_by(store_id=store_id, item_id=item_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        row = StoreItem(store_id=store_id, item_id=item_id)
        db.session.add(row)
        db.session.flush()
    return row


def balance(
    store_id: int | None,
    item_id: int,
    *,
    org_id: int | None = None,
    exclude_document: tuple[str, int] | None = None,
) -> int:
    """
    Quantity on hand.

    With a store: SUM of the store's movements, optionally ignoring every
    movement (original and reversal) of one document.
    Without a store: the legacy Item.stock aggregate.
    """
    if store_id is None:
        query = db.session.query(Item.stock).filter(Item.id == item_id)
        if org_id is not None:
            query = query.filter(Item.org_id == org_id)
        value = query.scalar()
        if value is None:
            raise NotFound("Item not found", details={"item_id": item_id})
        return int(value)

    q = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity_delta), 0)
    ).filter(
        StockMovement.store_id == store_id,
        StockMovement.item_id == item_id,
    )
    if exclude_document is not None:
        document_type, document_id = exclude_document
        q = q.filter(
            or_(
                StockMovement.document_type.is_(None),
                StockMovement.document_id.is_(None),
                StockMovement.document_type != document_type,
                StockMovement.document_id != document_id,
            )
        )
    return int(q.scalar() or 0)


def post_movement(
    *,
    store_id: int | None,
    item_id: int,
    quantity_delta: int,
    movement_type: str,
    document_type: str | None = None,
    document_id: int | None = None,
    note: str | None = None,
) -> StockMovement | None:
    """
    Record one stock change. Positive delta increments, negative decrements.

    Returns the ledger row, or None for store-less (legacy) postings.
    """
    if quantity_delta == 0:
        return None

    db.session.execute(
        update(Item)
        .where(Item.id == item_id)
        .values(stock=Item.stock + quantity_delta)
        .execution_options(synchronize_session=False)
    )

    if store_id is None:
        return None

    ensure_tracked(store_id, item_id)
    movement = StockMovement(
        store_id=store_id,
        item_id=item_id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        document_type=document_type,
        document_id=document_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def increment(store_id: int | None, item_id: int, quantity: int, **kwargs) -> StockMovement | None:
    return post_movement(store_id=store_id, item_id=item_id, quantity_delta=quantity, **kwargs)


def decrement(store_id: int | None, item_id: int, quantity: int, **kwargs) -> StockMovement | None:
    return post_movement(store_id=store_id, item_id=item_id, quantity_delta=-quantity, **kwargs)


def lock_balance_row(org_id: int, store_id: int | None, item_id: int) -> None:
    """Lock the row that guards the (store, item) balance before reading it."""
    if store_id is None:
        _ensure_item_in_org(org_id, item_id, lock=True)
    else:
        ensure_tracked(store_id, item_id, lock=True)


def movements_for_document(document_type: str, document_id: int) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(document_type=document_type, document_id=document_id)
        .order_by(StockMovement.id.asc())
        .all()
    )


def receive_stock(
    *,
    org_id: int,
    store_id: int | None,
    item_id: int,
    quantity: int,
    movement_type: str = "RECEIPT",
    note: str | None = None,
) -> StockMovement | None:
    """
    Put stock on hand outside of any document (opening balances, receipts).

    Commits.
    """
    if quantity <= 0:
        raise ValidationFailed("Quantity must be positive")

    def _op():
        _ensure_item_in_org(org_id, item_id)
        if store_id is not None:
            store = db.session.query(Store).filter_by(id=store_id, org_id=org_id).first()
            if store is None:
                raise NotFound("Store not found", details={"store_id": store_id})
        return increment(store_id, item_id, quantity, movement_type=movement_type, note=note)

    return run_in_transaction(_op)
