# Overview: Descriptors that parameterize the posting protocol for each document kind.

"""
Document kinds

The four posted document kinds share one posting protocol
(posting_service). Everything that differs between them lives here:

kind              cash sign  partner   stock      code
sales-invoice        +1      customer  outgoing   INV-00001
sales-return         -1      customer  incoming   RTN-00001
purchase-invoice     -1      supplier  incoming   PUR-00001
purchase-return      +1      supplier  outgoing   PRTN-00001
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import SalesInvoice, SalesReturn, PurchaseInvoice, PurchaseReturn
from .accounting_service import (
    KIND_SALES_INVOICE,
    KIND_SALES_RETURN,
    KIND_PURCHASE_INVOICE,
    KIND_PURCHASE_RETURN,
    sign_for,
)
from .errors import ValidationFailed

STOCK_OUTGOING = -1
STOCK_INCOMING = 1


@dataclass(frozen=True)
class DocumentKindDescriptor:
    kind: str
    model: type
    label: str
    code_prefix: str
    party_role: str
    stock_direction: int
    movement_type: str

    @property
    def sign(self) -> int:
        return sign_for(self.kind)

    @property
    def is_outgoing(self) -> bool:
        return self.stock_direction == STOCK_OUTGOING

    @property
    def debits_cash(self) -> bool:
        return self.sign < 0


DESCRIPTORS = {
    KIND_SALES_INVOICE: DocumentKindDescriptor(
        kind=KIND_SALES_INVOICE,
        model=SalesInvoice,
        label="Sales invoice",
        code_prefix="INV",
        party_role="customer",
        stock_direction=STOCK_OUTGOING,
        movement_type="SALES_INVOICE",
    ),
    KIND_SALES_RETURN: DocumentKindDescriptor(
        kind=KIND_SALES_RETURN,
        model=SalesReturn,
        label="Sales return",
        code_prefix="RTN",
        party_role="customer",
        stock_direction=STOCK_INCOMING,
        movement_type="SALES_RETURN",
    ),
    KIND_PURCHASE_INVOICE: DocumentKindDescriptor(
        kind=KIND_PURCHASE_INVOICE,
        model=PurchaseInvoice,
        label="Purchase invoice",
        code_prefix="PUR",
        party_role="supplier",
        stock_direction=STOCK_INCOMING,
        movement_type="PURCHASE_INVOICE",
    ),
    KIND_PURCHASE_RETURN: DocumentKindDescriptor(
        kind=KIND_PURCHASE_RETURN,
        model=PurchaseReturn,
        label="Purchase return",
        code_prefix="PRTN",
        party_role="supplier",
        stock_direction=STOCK_OUTGOING,
        movement_type="PURCHASE_RETURN",
    ),
}


def get_descriptor(kind: str) -> DocumentKindDescriptor:
    try:
        return DESCRIPTORS[kind]
    except KeyError:
        raise ValidationFailed(f"Unknown document kind: {kind}")
