from .invoices import Invoice, InvoiceItem, ServiceItem, InvoiceSequence
from .inventory import Tire, TyrePurchase
from .bookkeeping import Expense, StaffPayment
from .auth import Admin, AdminSession

__all__ = [
    'Invoice', 'InvoiceItem', 'ServiceItem', 'InvoiceSequence',
    'Tire', 'TyrePurchase',
    'Expense', 'StaffPayment',
    'Admin', 'AdminSession',
]
