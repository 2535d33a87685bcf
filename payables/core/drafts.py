"""What happens to an unsaved new payment when its editor is closed."""
from payables.core.types import PaymentDraft


def is_complete_draft(payment: PaymentDraft) -> bool:
    """
    True when an abandoned draft is worth keeping.

    Supplier chosen, number assigned, date present, payment amount > 0, at
    least one application with a positive amount, and no application above its
    invoice's amount due.
    """
    if not payment.supplier_id:
        return False
    if not (payment.number or '').strip():
        return False
    if payment.payment_date is None:
        return False
    if payment.payment_amount <= 0:
        return False
    if not any(app.applied_amount > 0 for app in payment.applications):
        return False
    if any(app.applied_amount > app.amount_due for app in payment.applications):
        return False
    return True


def should_persist_on_close(payment, is_new: bool) -> bool:
    """Only never-saved payments are auto-persisted; existing ones never are."""
    if not is_new or not isinstance(payment, PaymentDraft):
        return False
    return is_complete_draft(payment)
