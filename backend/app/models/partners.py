from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    MULTI-TENANT: Customers are scoped to organizations via org_id.

    current_balance_cents is what the customer owes the tenant. Only
    credit-method sales documents move it (partner_balance_service).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_customers_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    current_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "current_balance_cents": self.current_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """
    Supplier master data.

    current_balance_cents is what the tenant owes the supplier. Only
    credit-method purchase documents move it.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_suppliers_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    current_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("suppliers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "current_balance_cents": self.current_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
