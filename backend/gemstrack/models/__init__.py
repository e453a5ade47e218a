from .settings import RateEntry
from .documents import SequenceCounter
from .inventory import Category, Product, SoldProduct
from .customers import Customer, Artisan
from .sales import Invoice, InvoiceLine, InvoicePayment
from .orders import Order, OrderLine
from .ledger import LedgerPosting

__all__ = [
    'RateEntry',
    'SequenceCounter',
    'Category', 'Product', 'SoldProduct',
    'Customer', 'Artisan',
    'Invoice', 'InvoiceLine', 'InvoicePayment',
    'Order', 'OrderLine',
    'LedgerPosting',
]
