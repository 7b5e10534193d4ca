from .catalog import Product
from .sales import Sale, SaleLineItem, PAYMENT_METHODS, SALE_STATUSES
from .audit import AuditEvent, DocumentSequence

__all__ = [
    'Product',
    'Sale', 'SaleLineItem', 'PAYMENT_METHODS', 'SALE_STATUSES',
    'AuditEvent', 'DocumentSequence',
]
