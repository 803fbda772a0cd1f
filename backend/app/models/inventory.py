from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

ITEM_TYPE_STOCKED = "STOCKED"
ITEM_TYPE_SERVICE = "SERVICE"


class Item(db.Model):
    """
    Catalog item master data.

    MULTI-TENANT: Items are scoped to organizations via org_id.

    TYPE:
    - STOCKED: quantity is tracked; documents move stock
    - SERVICE: never touches stock (no movement, no sufficiency check)

    `stock` is the legacy per-item aggregate. For store-aware documents the
    StockMovement ledger is authoritative; the aggregate is still kept in
    step so tenants without stores keep a usable number.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_items_org_code"),
        db.Index("ix_items_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=ITEM_TYPE_STOCKED)

    # Authoritative storage in cents
    sale_price_cents = db.Column(db.Integer, nullable=True)
    purchase_price_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_stocked(self) -> bool:
        return self.type == ITEM_TYPE_STOCKED

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.code!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "sale_price_cents": self.sale_price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "stock": self.stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StoreItem(db.Model):
    """
    Marks an item as tracked in a store.

    The row carries no quantity (quantity is ledger-derived); it exists so
    a posting transaction has one row per (store, item) to lock before it
    reads the balance and writes a movement.
    """
    __tablename__ = "store_items"
    __table_args__ = (
        db.UniqueConstraint("store_id", "item_id", name="uq_store_items_store_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    Quantity on hand for (store, item) is SUM(quantity_delta). Reversals are
    new rows of type REVERSAL pointing at the same document; existing rows
    are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_item", "store_id", "item_id"),
        db.Index("ix_stock_movements_document", "document_type", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)

    # OPENING, RECEIPT, ADJUST, SALES_INVOICE, SALES_RETURN, PURCHASE_INVOICE, PURCHASE_RETURN, REVERSAL
    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    # Source document (no FK: the document row may be deleted, its movements stay)
    document_type = db.Column(db.String(32), nullable=True)
    document_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "item_id": self.item_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
