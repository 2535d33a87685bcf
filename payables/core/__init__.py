"""Accounts-payable reconciliation core (pure, in-memory)."""
from payables.core.types import (
    InvoiceStatus, ApprovalStatus, PaymentStatus, EditSource,
    InvoiceDraft, InvoiceLineDraft, ApplicationDraft, PaymentDraft,
    PostedApplication, PostedPayment, ReceiptData, ReceiptLineData,
    payment_from_dict,
)
from payables.core.terms import synchronize_terms, apply_terms_edit, TermsUpdate
from payables.core.receipts import import_receipt, ReceiptImport
from payables.core.conflicts import DraftConflict, find_draft_conflicts
from payables.core.allocation import (
    ClampAdjustment, is_eligible, eligible_invoices, allocate_invoice,
    deallocate_invoice, refresh_allocations,
)
from payables.core.drafts import should_persist_on_close

__all__ = [
    'InvoiceStatus', 'ApprovalStatus', 'PaymentStatus', 'EditSource',
    'InvoiceDraft', 'InvoiceLineDraft', 'ApplicationDraft', 'PaymentDraft',
    'PostedApplication', 'PostedPayment', 'ReceiptData', 'ReceiptLineData',
    'payment_from_dict',
    'synchronize_terms', 'apply_terms_edit', 'TermsUpdate',
    'import_receipt', 'ReceiptImport',
    'DraftConflict', 'find_draft_conflicts',
    'ClampAdjustment', 'is_eligible', 'eligible_invoices', 'allocate_invoice',
    'deallocate_invoice', 'refresh_allocations',
    'should_persist_on_close',
]
