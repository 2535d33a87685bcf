"""Payment aggregate: header plus its set of invoice applications.

While DRAFT the payment amount follows the applications (it is re-summed on
every add, remove and applied-amount edit). Finalizing returns a PostedPayment,
which has no mutators, so a PAID payment cannot be edited through this module.
"""
from decimal import Decimal

from payables.core.types import (
    ApplicationDraft, PaymentDraft, PostedApplication, PostedPayment
)
from payables.exceptions import ValidationError
from payables.utils.formatters import money_2


def ensure_draft(payment) -> PaymentDraft:
    if not isinstance(payment, PaymentDraft):
        raise ValidationError(
            f'Payment {getattr(payment, "number", "")} is finalized and cannot be changed'
        )
    return payment


def check_applied_amount(amount: Decimal, amount_due: Decimal, invoice_number: str = '') -> None:
    """0 < applied amount <= amount due."""
    if amount is None or amount <= 0:
        raise ValidationError(
            f'Applied amount for invoice {invoice_number} must be greater than 0',
            field='applied_amount',
        )
    if amount > amount_due:
        raise ValidationError(
            f'Applied amount {money_2(amount)} exceeds the amount due '
            f'{money_2(amount_due)} on invoice {invoice_number}',
            field='applied_amount',
        )


def recompute_payment_amount(payment: PaymentDraft) -> Decimal:
    payment.payment_amount = payment.amount_applied
    return payment.payment_amount


def add_application(payment: PaymentDraft, application: ApplicationDraft) -> ApplicationDraft:
    ensure_draft(payment)
    if payment.find_application(application.invoice_id) is not None:
        raise ValidationError(
            f'Invoice {application.invoice_number or application.invoice_id} '
            f'is already applied on this payment',
            field='invoice_id',
        )
    check_applied_amount(application.applied_amount, application.amount_due, application.invoice_number)
    payment.applications.append(application)
    recompute_payment_amount(payment)
    return application


def remove_application(payment: PaymentDraft, invoice_id: int) -> ApplicationDraft:
    ensure_draft(payment)
    application = payment.find_application(invoice_id)
    if application is None:
        raise ValidationError(f'Invoice {invoice_id} is not applied on this payment', field='invoice_id')
    payment.applications.remove(application)
    recompute_payment_amount(payment)
    return application


def set_applied_amount(payment: PaymentDraft, invoice_id: int, amount: Decimal) -> ApplicationDraft:
    """Edit one applied amount; the payment amount follows the new sum."""
    ensure_draft(payment)
    application = payment.find_application(invoice_id)
    if application is None:
        raise ValidationError(f'Invoice {invoice_id} is not applied on this payment', field='invoice_id')
    check_applied_amount(amount, application.amount_due, application.invoice_number)
    application.applied_amount = amount
    recompute_payment_amount(payment)
    return application


def set_payment_amount(payment: PaymentDraft, amount: Decimal) -> PaymentDraft:
    ensure_draft(payment)
    if amount is None or amount < 0:
        raise ValidationError('Payment amount cannot be negative', field='payment_amount')
    payment.payment_amount = amount
    return payment


def finalization_errors(payment: PaymentDraft) -> list:
    errors = []
    if not payment.supplier_id:
        errors.append('Supplier is required')
    if not payment.number:
        errors.append('Payment number is required')
    if not payment.payment_date:
        errors.append('Payment date is required')
    if payment.payment_amount <= 0:
        errors.append('Payment amount must be greater than 0')
    if not payment.applications:
        errors.append('At least one invoice application is required')
    for app in payment.applications:
        label = app.invoice_number or app.invoice_id
        if app.applied_amount <= 0:
            errors.append(f'Applied amount for invoice {label} must be greater than 0')
        elif app.applied_amount > app.amount_due:
            errors.append(
                f'Applied amount {money_2(app.applied_amount)} exceeds the amount due '
                f'{money_2(app.amount_due)} on invoice {label}'
            )
    if payment.unapplied_amount < 0:
        errors.append(
            f'Applied total {money_2(payment.amount_applied)} exceeds the payment amount '
            f'{money_2(payment.payment_amount)}'
        )
    return errors


def validate_for_finalize(payment: PaymentDraft) -> None:
    ensure_draft(payment)
    errors = finalization_errors(payment)
    if errors:
        raise ValidationError(errors[0], payload={'errors': errors})


def finalize(payment: PaymentDraft) -> PostedPayment:
    """DRAFT -> PAID. The returned PostedPayment is read-only."""
    validate_for_finalize(payment)
    applications = tuple(
        PostedApplication(
            invoice_id=app.invoice_id,
            invoice_number=app.invoice_number,
            applied_amount=app.applied_amount,
            application_date=app.application_date or payment.payment_date,
        )
        for app in payment.applications
    )
    return PostedPayment(
        id=payment.id,
        number=payment.number,
        supplier_id=payment.supplier_id,
        payment_date=payment.payment_date,
        currency_code=payment.currency_code,
        exchange_rate=payment.exchange_rate,
        payment_amount=payment.payment_amount,
        applications=applications,
        payment_method=payment.payment_method,
        reference_number=payment.reference_number,
    )
