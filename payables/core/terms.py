"""Keeps invoice date, due date and payment terms consistent.

due_date = invoice_date + payment_terms days. The caller passes the field the
user just edited; the other side is derived once and nothing else is touched,
so a single call always converges.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from payables.core.types import EditSource


@dataclass(frozen=True)
class TermsUpdate:
    due_date: Optional[date]
    payment_terms: Optional[int]
    due_date_changed: bool = False
    payment_terms_changed: bool = False

    @property
    def changed(self) -> bool:
        return self.due_date_changed or self.payment_terms_changed


def synchronize_terms(
    invoice_date: Optional[date],
    due_date: Optional[date],
    payment_terms: Optional[int],
    edit_source: Optional[EditSource],
) -> TermsUpdate:
    """
    Recompute the dependent field for one edit.

    - INVOICE_DATE / PAYMENT_TERMS: due_date = invoice_date + terms, written
      only when it differs from the stored value.
    - DUE_DATE: terms = days between the two dates, written only when positive
      and different; otherwise terms stay as they are.
    - None: nothing to do (the edit has already been consumed).
    """
    unchanged = TermsUpdate(due_date=due_date, payment_terms=payment_terms)
    if edit_source is None or invoice_date is None:
        return unchanged

    if edit_source in (EditSource.INVOICE_DATE, EditSource.PAYMENT_TERMS):
        if payment_terms is None:
            return unchanged
        computed = invoice_date + timedelta(days=payment_terms)
        if computed == due_date:
            return unchanged
        return TermsUpdate(due_date=computed, payment_terms=payment_terms, due_date_changed=True)

    if edit_source is EditSource.DUE_DATE:
        if due_date is None:
            return unchanged
        days = round((due_date - invoice_date) / timedelta(days=1))
        if days <= 0 or days == payment_terms:
            return unchanged
        return TermsUpdate(due_date=due_date, payment_terms=days, payment_terms_changed=True)

    return unchanged


def apply_terms_edit(invoice, edit_source: Optional[EditSource]) -> TermsUpdate:
    """Run synchronize_terms against an InvoiceDraft and write the result back."""
    update = synchronize_terms(
        invoice.invoice_date, invoice.due_date, invoice.payment_terms, edit_source
    )
    if update.due_date_changed:
        invoice.due_date = update.due_date
    if update.payment_terms_changed:
        invoice.payment_terms = update.payment_terms
    return update


def default_due_date(invoice_date: Optional[date], payment_terms: Optional[int]) -> Optional[date]:
    """Due date for a new invoice that arrives without one."""
    if invoice_date is None or payment_terms is None:
        return None
    return invoice_date + timedelta(days=payment_terms)
