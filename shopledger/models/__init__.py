"""Models package - exports all SQLAlchemy models."""
# Shop & staff
from shopledger.models.tenant import Tenant
from shopledger.models.staff_profile import StaffProfile, StaffRole

# Inventory
from shopledger.models.product import Product
from shopledger.models.stock_entry import StockEntry

# Sales & credit
from shopledger.models.customer import Customer
from shopledger.models.sale import Sale, PaymentMethod
from shopledger.models.sale_item import SaleItem
from shopledger.models.loan import Loan, LoanStatus
from shopledger.models.loan_payment import LoanPayment
from shopledger.models.receipt_sequence import ReceiptSequence

__all__ = [
    'Tenant', 'StaffProfile', 'StaffRole',
    'Product', 'StockEntry',
    'Customer', 'Sale', 'PaymentMethod', 'SaleItem',
    'Loan', 'LoanStatus', 'LoanPayment', 'ReceiptSequence',
]
