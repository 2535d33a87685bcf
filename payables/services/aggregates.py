"""Conversions from persisted rows to the in-memory core aggregates."""
from payables.core.types import InvoiceDraft, payment_from_dict


def invoice_draft(invoice) -> InvoiceDraft:
    """Invoice row -> InvoiceDraft (header, lines and stored totals)."""
    return InvoiceDraft.from_dict(invoice.to_dict())


def payment_aggregate(payment):
    """Payment row -> PaymentDraft, or PostedPayment when it is PAID."""
    return payment_from_dict(payment.to_dict())
