"""Models package - exports all SQLAlchemy models."""
# Reference data
from payables.models.supplier import Supplier, SupplierSite
from payables.models.inventory_item import InventoryItem
from payables.models.tax_rate import TaxRate

# Receipts
from payables.models.receipt import Receipt, ReceiptLine

# Payables
from payables.models.invoice import Invoice
from payables.models.invoice_line import InvoiceLine
from payables.models.payment import Payment
from payables.models.payment_application import PaymentApplication
from payables.models.draft_reservation import DraftReservation
from payables.core.types import InvoiceStatus, ApprovalStatus, PaymentStatus

__all__ = [
    'Supplier', 'SupplierSite', 'InventoryItem', 'TaxRate',
    'Receipt', 'ReceiptLine',
    'Invoice', 'InvoiceLine', 'InvoiceStatus', 'ApprovalStatus',
    'Payment', 'PaymentApplication', 'PaymentStatus', 'DraftReservation',
]
