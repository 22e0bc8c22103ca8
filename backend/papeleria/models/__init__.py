from .parties import User, Customer, Supplier
from .catalog import Product, Service
from .registers import CashRegister
from .sales import Sale, SaleItem, SalePayment
from .purchases import Purchase, PurchaseDetail

__all__ = [
    'User', 'Customer', 'Supplier',
    'Product', 'Service',
    'CashRegister',
    'Sale', 'SaleItem', 'SalePayment',
    'Purchase', 'PurchaseDetail',
]
