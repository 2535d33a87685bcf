"""Allocation engine: which invoices a payment may settle, and how much.

Every mutation here is gated by the draft conflicts the caller fetched from
the authority; a conflict on the candidate invoice rejects the mutation.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from payables.core.conflicts import DraftConflict, held_invoice_ids, raise_for_conflicts
from payables.core.payment import add_application, ensure_draft, remove_application
from payables.core.types import (
    ApplicationDraft, ApprovalStatus, InvoiceDraft, InvoiceStatus, PaymentDraft
)
from payables.exceptions import ValidationError
from payables.utils.formatters import money_2

INELIGIBLE_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.VOID)


@dataclass(frozen=True)
class ClampAdjustment:
    """An applied amount lowered because the invoice now owes less."""
    invoice_id: int
    invoice_number: str
    previous_amount: Decimal
    applied_amount: Decimal
    amount_due: Decimal

    @property
    def reduced_by(self) -> Decimal:
        return self.previous_amount - self.applied_amount

    def to_dict(self):
        return {
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice_number,
            'previous_amount': str(self.previous_amount),
            'applied_amount': str(self.applied_amount),
            'amount_due': str(self.amount_due),
        }

    def __str__(self):
        return (
            f'Invoice {self.invoice_number}: applied amount reduced from '
            f'{money_2(self.previous_amount)} to {money_2(self.applied_amount)}'
        )


def is_eligible(invoice: InvoiceDraft) -> bool:
    """amount due > 0, approved, and not PAID/CANCELLED/VOID."""
    return (
        invoice.amount_due > 0
        and invoice.approval_status is ApprovalStatus.APPROVED
        and invoice.status not in INELIGIBLE_STATUSES
    )


def ineligibility_reason(invoice: InvoiceDraft) -> Optional[str]:
    if invoice.status in INELIGIBLE_STATUSES:
        return f'invoice {invoice.number} is {invoice.status.value}'
    if invoice.approval_status is not ApprovalStatus.APPROVED:
        return f'invoice {invoice.number} is not approved'
    if invoice.amount_due <= 0:
        return f'invoice {invoice.number} has nothing due'
    return None


def eligible_invoices(
    invoices: Iterable[InvoiceDraft],
    supplier_id: Optional[int] = None,
    conflicts: Iterable[DraftConflict] = (),
) -> List[InvoiceDraft]:
    """Invoices that may be offered to a payment (advisory conflict filter applied)."""
    held = held_invoice_ids(conflicts)
    return [
        invoice for invoice in invoices
        if is_eligible(invoice)
        and (supplier_id is None or invoice.supplier_id == supplier_id)
        and invoice.id not in held
    ]


def allocate_invoice(
    payment: PaymentDraft,
    invoice: InvoiceDraft,
    conflicts: Iterable[DraftConflict] = (),
    application_date: Optional[date] = None,
) -> ApplicationDraft:
    """
    Apply an eligible invoice to the payment for its full amount due.

    Raises:
        ConflictError: another draft payment already holds the invoice.
        ValidationError: the invoice is not eligible or belongs to another supplier.
    """
    ensure_draft(payment)
    raise_for_conflicts(conflicts, invoice_id=invoice.id)

    reason = ineligibility_reason(invoice)
    if reason:
        raise ValidationError(f'Cannot apply payment: {reason}', field='invoice_id')
    if payment.supplier_id is not None and invoice.supplier_id != payment.supplier_id:
        raise ValidationError(
            f'Invoice {invoice.number} belongs to another supplier', field='invoice_id'
        )

    application = ApplicationDraft(
        invoice_id=invoice.id,
        invoice_number=invoice.number,
        applied_amount=invoice.amount_due,
        amount_due=invoice.amount_due,
        application_date=application_date or payment.payment_date,
    )
    return add_application(payment, application)


def deallocate_invoice(payment: PaymentDraft, invoice_id: int) -> ApplicationDraft:
    return remove_application(payment, invoice_id)


def refresh_allocations(
    payment: PaymentDraft, invoices: Iterable[InvoiceDraft]
) -> List[ClampAdjustment]:
    """
    Re-clamp every application to the invoices' current amount due.

    Applied amounts only ever go down here (min of previous and current due);
    each decrease is returned so the caller can show it. The payment amount is
    not touched, so the difference shows up as unapplied amount.
    """
    ensure_draft(payment)
    current: Dict[int, InvoiceDraft] = {invoice.id: invoice for invoice in invoices}
    adjustments = []
    for app in payment.applications:
        invoice = current.get(app.invoice_id)
        if invoice is None:
            continue
        due = max(invoice.amount_due, Decimal('0'))
        app.amount_due = due
        if app.applied_amount > due:
            adjustments.append(ClampAdjustment(
                invoice_id=app.invoice_id,
                invoice_number=app.invoice_number or invoice.number,
                previous_amount=app.applied_amount,
                applied_amount=due,
                amount_due=due,
            ))
            app.applied_amount = due
    return adjustments


def over_allocations(payment: PaymentDraft, invoices: Iterable[InvoiceDraft]) -> List[str]:
    """Applications that exceed the current amount due of their invoice."""
    current = {invoice.id: invoice for invoice in invoices}
    problems = []
    for app in payment.applications:
        invoice = current.get(app.invoice_id)
        due = invoice.amount_due if invoice is not None else app.amount_due
        if app.applied_amount > due:
            problems.append(
                f'Applied amount {money_2(app.applied_amount)} exceeds the amount due '
                f'{money_2(due)} on invoice {app.invoice_number or app.invoice_id}'
            )
    return problems
