from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


# =============================================================================
# POSTED FINANCIAL DOCUMENTS
# =============================================================================

class FinancialDocument(db.Model):
    """
    Posted sales/purchase document (invoice or return).

    WHY one table: the four kinds share every column and the same posting
    protocol; they differ only in sign conventions, counter-party role and
    stock direction (see services/document_kinds.py). `kind` is the
    polymorphic discriminator.

    PAYMENT COLUMNS (only one shape is ever populated):
    - payment_method = "credit": counter_party_id set, every target column NULL
    - payment_method = "cash":   payment_target_type in (safe, bank, split)
        safe  -> safe_id (NULL means "the safe of branch_id")
        bank  -> bank_id
        split -> safe_id/bank_id + split_cash_cents/split_bank_cents
      counter_party_id may still name a customer/supplier for display, but
      its balance is never touched.

    Totals are derived by totals_service and written together with lines;
    they are never edited independently.
    """
    __tablename__ = "financial_documents"
    __table_args__ = (
        db.UniqueConstraint("org_id", "kind", "code", name="uq_fin_docs_org_kind_code"),
        db.Index("ix_fin_docs_org_kind_date", "org_id", "kind", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, index=True)

    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    # Human-readable number (e.g., "INV-00001"); assigned once at create
    code = db.Column(db.String(32), nullable=False)

    # Business date (not the creation timestamp)
    date = db.Column(db.Date, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, credit
    counter_party_id = db.Column(db.Integer, nullable=True, index=True)

    payment_target_type = db.Column(db.String(16), nullable=True)  # safe, bank, split
    safe_id = db.Column(db.Integer, db.ForeignKey("safes.id"), nullable=True)
    bank_id = db.Column(db.Integer, db.ForeignKey("banks.id"), nullable=True)
    split_cash_cents = db.Column(db.BigInteger, nullable=True)
    split_bank_cents = db.Column(db.BigInteger, nullable=True)

    # Derived totals (all amounts in cents)
    subtotal_cents = db.Column(db.BigInteger, nullable=False, default=0)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    net_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Stock override, fixed at create time
    allow_insufficient_stock = db.Column(db.Boolean, nullable=False, default=False)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    updated_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    lines = db.relationship(
        "DocumentLine",
        backref="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.position",
        lazy=True,
    )

    __mapper_args__ = {"polymorphic_on": kind}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} code={self.code!r} net={self.net_cents}>"

    def payment_target_dict(self) -> dict | None:
        if self.payment_method != "cash":
            return None
        if self.payment_target_type == "split":
            return {
                "type": "split",
                "safe_id": self.safe_id,
                "bank_id": self.bank_id,
                "cash_amount_cents": self.split_cash_cents,
                "bank_amount_cents": self.split_bank_cents,
            }
        if self.payment_target_type == "bank":
            return {"type": "bank", "bank_id": self.bank_id}
        return {"type": "safe", "safe_id": self.safe_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "org_id": self.org_id,
            "branch_id": self.branch_id,
            "store_id": self.store_id,
            "code": self.code,
            "date": to_iso_date(self.date),
            "payment_method": self.payment_method,
            "counter_party_id": self.counter_party_id,
            "payment_target": self.payment_target_dict(),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "net_cents": self.net_cents,
            "allow_insufficient_stock": self.allow_insufficient_stock,
            "notes": self.notes,
            "lines": [line.to_dict() for line in self.lines],
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SalesInvoice(FinancialDocument):
    __mapper_args__ = {"polymorphic_identity": "sales-invoice"}


class SalesReturn(FinancialDocument):
    __mapper_args__ = {"polymorphic_identity": "sales-return"}


class PurchaseInvoice(FinancialDocument):
    __mapper_args__ = {"polymorphic_identity": "purchase-invoice"}


class PurchaseReturn(FinancialDocument):
    __mapper_args__ = {"polymorphic_identity": "purchase-return"}


class DocumentLine(db.Model):
    """Line item of a financial document (amounts in cents)."""
    __tablename__ = "document_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer,
        db.ForeignKey("financial_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_inclusive = db.Column(db.Boolean, nullable=False, default=False)

    net_cents = db.Column(db.BigInteger, nullable=False)
    tax_cents = db.Column(db.BigInteger, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_inclusive": self.tax_inclusive,
            "net_cents": self.net_cents,
            "tax_cents": self.tax_cents,
            "line_total_cents": self.line_total_cents,
        }


# =============================================================================
# SEQUENCES & AUDIT
# =============================================================================

class DocumentSequence(db.Model):
    """
    Atomic per-tenant document sequences.

    WHY: Prevent race conditions when generating document codes
    (two concurrent creates must never receive the same code).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class AuditLog(db.Model):
    """
    Who did what to which document.

    Written after the business transaction commits, in its own commit.
    Losing an audit row never undoes a posting.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(32), nullable=False, index=True)  # CREATE, UPDATE, DELETE
    target_type = db.Column(db.String(64), nullable=False)
    target_id = db.Column(db.Integer, nullable=True)
    message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }
