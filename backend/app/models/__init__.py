from .tenancy import Organization, Branch, Store
from .finance import Safe, Bank, FiscalYear
from .partners import Customer, Supplier
from .inventory import Item, StoreItem, StockMovement
from .documents import (
    FinancialDocument, SalesInvoice, SalesReturn, PurchaseInvoice, PurchaseReturn,
    DocumentLine, DocumentSequence, AuditLog,
)

__all__ = [
    'Organization', 'Branch', 'Store',
    'Safe', 'Bank', 'FiscalYear',
    'Customer', 'Supplier',
    'Item', 'StoreItem', 'StockMovement',
    'FinancialDocument', 'SalesInvoice', 'SalesReturn', 'PurchaseInvoice', 'PurchaseReturn',
    'DocumentLine', 'DocumentSequence', 'AuditLog',
]
