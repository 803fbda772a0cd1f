# Overview: Applies, reverses and pre-checks the stock effect of a posted document.

from __future__ import annotations

from typing import Iterable

from .document_kinds import DocumentKindDescriptor
from .errors import InsufficientStock
from . import stock_ledger_service

REVERSAL_MOVEMENT = "REVERSAL"


def stocked_quantities(lines: Iterable, items: dict) -> dict[int, int]:
    """
    Sum line quantities per STOCKED item.

    `lines` are anything with item_id/quantity; `items` maps item_id to the
    tenant's Item rows. SERVICE items are left out. Keys come back sorted so
    row locks are always taken in the same order.
    """
    totals: dict[int, int] = {}
    for line in lines:
        item = items[line.item_id]
        if not item.is_stocked:
            continue
        totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
    return {item_id: totals[item_id] for item_id in sorted(totals)}


def posted_quantities(descriptor: DocumentKindDescriptor, *, document_id: int, store_id: int) -> dict[int, int]:
    """
    Quantities a document still has on the ledger of `store_id`.

    Nets the document's movement rows (including earlier reversals) so an
    undo mirrors exactly what was posted, whatever the items look like now.
    """
    totals: dict[int, int] = {}
    for movement in stock_ledger_service.movements_for_document(descriptor.kind, document_id):
        if movement.store_id != store_id:
            continue
        totals[movement.item_id] = totals.get(movement.item_id, 0) + movement.quantity_delta
    return {
        item_id: totals[item_id] * descriptor.stock_direction
        for item_id in sorted(totals)
        if totals[item_id] != 0
    }


def ensure_available(
    descriptor: DocumentKindDescriptor,
    *,
    org_id: int,
    store_id: int | None,
    quantities: dict[int, int],
    allow_insufficient: bool = False,
) -> None:
    """
    Refuse an outgoing document that would take stock below zero.

    Incoming kinds and documents created with the override flag pass.
    Each balance row is locked before it is read.
    """
    if not descriptor.is_outgoing or allow_insufficient:
        return

    insufficient = []
    for item_id, qty in quantities.items():
        if qty <= 0:
            continue
        stock_ledger_service.lock_balance_row(org_id, store_id, item_id)
        on_hand = stock_ledger_service.balance(store_id, item_id, org_id=org_id)
        if on_hand < qty:
            insufficient.append({
                "item_id": item_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to post document",
            details={"items": insufficient, "store_id": store_id},
        )


def apply_stock(
    descriptor: DocumentKindDescriptor,
    *,
    document_id: int,
    code: str,
    store_id: int | None,
    quantities: dict[int, int],
) -> None:
    """Decrement (outgoing kinds) or increment (incoming kinds) stock per item."""
    for item_id, qty in quantities.items():
        stock_ledger_service.post_movement(
            store_id=store_id,
            item_id=item_id,
            quantity_delta=descriptor.stock_direction * qty,
            movement_type=descriptor.movement_type,
            document_type=descriptor.kind,
            document_id=document_id,
            note=f"{descriptor.label} {code}",
        )


def reverse_stock(
    descriptor: DocumentKindDescriptor,
    *,
    document_id: int,
    code: str,
    store_id: int | None,
    quantities: dict[int, int],
) -> None:
    """Undo apply_stock() for the same quantities."""
    for item_id, qty in quantities.items():
        stock_ledger_service.post_movement(
            store_id=store_id,
            item_id=item_id,
            quantity_delta=-descriptor.stock_direction * qty,
            movement_type=REVERSAL_MOVEMENT,
            document_type=descriptor.kind,
            document_id=document_id,
            note=f"Reverse {descriptor.label.lower()} {code}",
        )
