"""Async orchestration of one in-progress invoice or payment edit."""
from payables.editors.invoice_editor import InvoiceEditor
from payables.editors.payment_editor import PaymentEditor

__all__ = ['InvoiceEditor', 'PaymentEditor']
