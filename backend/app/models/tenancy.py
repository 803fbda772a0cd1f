from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    All branches, stores, cash accounts, partners, items and documents
    belong to exactly one organization. No data may cross organization
    boundaries.

    TAX POLICY:
    - is_vat_enabled: when False, documents carry no tax at all
    - vat_rate_bps: VAT rate in basis points (1500 = 15%)
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    is_vat_enabled = db.Column(db.Boolean, nullable=False, default=False)
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "is_vat_enabled": self.is_vat_enabled,
            "vat_rate_bps": self.vat_rate_bps,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Branch(db.Model):
    """
    Branch within an organization.

    Every branch owns exactly one safe (see Safe.branch_id). Cash documents
    that pay "to the safe" without naming one resolve it through the branch.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_branches_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("branches", lazy=True))

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }

class Store(db.Model):
    """
    Stock location within an organization.

    MULTI-TENANT: Stores are scoped to organizations via org_id.
    Documents that name a store are "stock-aware": their stock effect goes
    through the StockMovement ledger for that store.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_stores_org_name"),
        db.UniqueConstraint("org_id", "code", name="uq_stores_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("stores", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "branch_id": self.branch_id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }
