from .catalog import Category, Supplier, Product, ProductUnit
from .stock import StockMovement
from .transactions import Transaction, TransactionItem, DebtRecord, DebtPayment
from .sequences import ReceiptSequence

__all__ = [
    'Category', 'Supplier', 'Product', 'ProductUnit',
    'StockMovement',
    'Transaction', 'TransactionItem', 'DebtRecord', 'DebtPayment',
    'ReceiptSequence',
]
