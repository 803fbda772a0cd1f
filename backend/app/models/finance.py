from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class Safe(db.Model):
    """
    Cash box of a branch (one per branch).

    current_balance_cents is a signed running total. It is only ever
    changed by an atomic "increment by delta" statement issued from
    accounting_service; never assign it directly in application code.
    """
    __tablename__ = "safes"
    __table_args__ = (
        db.UniqueConstraint("branch_id", name="uq_safes_branch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)

    current_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("safe", uselist=False, lazy=True))

    def __repr__(self) -> str:
        return f"<Safe id={self.id} branch_id={self.branch_id} balance={self.current_balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "current_balance_cents": self.current_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Bank(db.Model):
    """Tenant-wide bank account. Same balance rules as Safe."""
    __tablename__ = "banks"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_banks_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    account_number = db.Column(db.String(64), nullable=True)

    current_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Bank id={self.id} name={self.name!r} balance={self.current_balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "account_number": self.account_number,
            "current_balance_cents": self.current_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class FiscalYear(db.Model):
    """
    Accounting period of a tenant.

    Documents may only be created, edited or deleted when their business
    date falls inside an OPEN period and not inside a CLOSED one.
    Periods of one organization never overlap (enforced by fiscal_service).
    """
    __tablename__ = "fiscal_years"
    __table_args__ = (
        db.Index("ix_fiscal_years_org_range", "org_id", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<FiscalYear id={self.id} {self.start_date}..{self.end_date} {self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by_user_id": self.closed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
