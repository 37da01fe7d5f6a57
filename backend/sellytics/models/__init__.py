from .tenancy import Store
from .customers import Customer
from .inventory import Product, InventoryRecord
from .sales import SaleGroup, SaleLine
from .debts import DebtRecord, PaymentRecord

__all__ = [
    'Store',
    'Customer',
    'Product', 'InventoryRecord',
    'SaleGroup', 'SaleLine',
    'DebtRecord', 'PaymentRecord',
]
