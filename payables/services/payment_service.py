"""Payment service: draft payments, reservations and finalization."""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from payables.core import payment as payment_core
from payables.core.allocation import allocate_invoice, eligible_invoices as filter_eligible
from payables.core.types import PaymentDraft, ApplicationDraft
from payables.exceptions import PayablesError, ValidationError, NotFoundError
from payables.models import (
    Payment, PaymentApplication, Invoice, Supplier,
    PaymentStatus, InvoiceStatus, ApprovalStatus
)
from payables.services.aggregates import invoice_draft
from payables.services.invoice_service import get_invoice, record_invoice_payment
from payables.services.reservation_service import (
    check_draft_conflicts, reserve_or_reject, release_reservations
)
from payables.utils.formatters import money_2
from payables.utils.number_format import ZERO, parse_date, parse_decimal, parse_int

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    'number', 'supplier_id', 'payment_date', 'currency_code', 'exchange_rate',
    'payment_method', 'bank_account', 'reference_number', 'notes',
)

PAYMENT_METHODS = ('CHECK', 'WIRE', 'ACH', 'CASH')


def payment_number_for(payment_id: int) -> str:
    return f'PAY{payment_id:08d}'


def next_payment_number(session) -> str:
    """Preview of the number the next payment will get (not reserved)."""
    last_id = session.query(func.max(Payment.id)).scalar() or 0
    return payment_number_for(last_id + 1)


def get_payment(session, payment_id: int, for_update=False) -> Payment:
    query = session.query(Payment).filter(Payment.id == payment_id)
    if for_update:
        query = query.with_for_update()
    payment = query.first()
    if not payment:
        raise NotFoundError(f'Payment {payment_id} not found')
    return payment


def list_payments(session, status=None, supplier_id=None, date_from=None, date_to=None):
    """Payments filtered by status, supplier and payment-date range, newest first."""
    query = session.query(Payment)
    if status:
        try:
            query = query.filter(Payment.status == PaymentStatus(str(status).upper()))
        except ValueError:
            raise ValidationError(f'Invalid payment status: {status!r}', field='status')
    if supplier_id:
        query = query.filter(Payment.supplier_id == parse_int(supplier_id, 'supplier_id'))
    date_from = parse_date(date_from, 'date_from')
    date_to = parse_date(date_to, 'date_to')
    if date_from:
        query = query.filter(Payment.payment_date >= date_from)
    if date_to:
        query = query.filter(Payment.payment_date <= date_to)
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def payment_applications(payment_id: int, session) -> list:
    payment = get_payment(session, payment_id)
    return [application.to_dict() for application in payment.applications]


def eligible_invoices(session, supplier_id, exclude_payment_id=None) -> list:
    """
    The supplier's invoices a payment may settle, as InvoiceDrafts.

    Invoices held by other draft payments are filtered out; this is only the
    advisory phase, the reservation at save time is what decides.
    """
    supplier_id = parse_int(supplier_id, 'supplier_id')
    if not supplier_id:
        raise ValidationError('supplier_id is required', field='supplier_id')
    exclude_payment_id = parse_int(exclude_payment_id, 'exclude_payment_id')

    rows = (session.query(Invoice)
            .filter(Invoice.supplier_id == supplier_id,
                    Invoice.approval_status == ApprovalStatus.APPROVED,
                    Invoice.status.notin_((InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.VOID)),
                    Invoice.total_amount > Invoice.amount_paid)
            .order_by(Invoice.due_date, Invoice.id)
            .all())
    drafts = [invoice_draft(row) for row in rows]
    conflicts = check_draft_conflicts(session, [d.id for d in drafts], exclude_payment_id)
    return filter_eligible(drafts, supplier_id, conflicts)


def _header_from_payload(payment: PaymentDraft, payload: dict) -> None:
    for key in HEADER_FIELDS:
        if key not in payload:
            continue
        value = payload.get(key)
        if key == 'supplier_id':
            value = parse_int(value, key)
        elif key == 'payment_date':
            value = parse_date(value, key)
        elif key == 'exchange_rate':
            value = parse_decimal(value, key)
        elif key == 'payment_method':
            value = (value or '').strip().upper() or None
            if value and value not in PAYMENT_METHODS:
                raise ValidationError(
                    f'Payment method must be one of {", ".join(PAYMENT_METHODS)}', field='payment_method'
                )
        elif key == 'number':
            value = (value or '').strip()
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(payment, key, value)


def _build_draft(payload: dict, session, existing: Payment = None) -> PaymentDraft:
    """
    Validate a payment payload against the current invoices and return the draft.

    Applications are re-created through the allocation engine so each one is
    checked for eligibility, supplier match and 0 < applied <= amount due. The
    advisory conflict check runs first so a held invoice fails fast.
    """
    config = current_app.config
    draft = PaymentDraft(
        id=existing.id if existing else None,
        number=existing.number if existing else '',
        supplier_id=existing.supplier_id if existing else None,
        payment_date=existing.payment_date if existing else None,
        currency_code=existing.currency_code if existing else None,
        exchange_rate=existing.exchange_rate if existing else None,
        payment_method=existing.payment_method if existing else None,
        bank_account=existing.bank_account if existing else None,
        reference_number=existing.reference_number if existing else None,
        notes=existing.notes if existing else None,
    )
    _header_from_payload(draft, payload)

    if not draft.supplier_id:
        raise ValidationError('Supplier is required', field='supplier_id')
    if session.get(Supplier, draft.supplier_id) is None:
        raise ValidationError(f'Supplier {draft.supplier_id} not found', field='supplier_id')
    draft.payment_date = draft.payment_date or date.today()
    draft.currency_code = draft.currency_code or config.get('DEFAULT_CURRENCY_CODE', 'USD')
    if draft.exchange_rate is None:
        draft.exchange_rate = Decimal('1')
    if draft.exchange_rate <= 0:
        raise ValidationError('Exchange rate must be greater than 0', field='exchange_rate')

    if 'applications' in payload:
        raw_applications = payload.get('applications') or []
    elif existing is not None:
        raw_applications = [application.to_dict() for application in existing.applications]
    else:
        raw_applications = []

    invoice_ids = [parse_int(raw.get('invoice_id'), 'invoice_id') for raw in raw_applications]
    if len(set(invoice_ids)) != len(invoice_ids):
        raise ValidationError('An invoice can only be applied once per payment', field='applications')
    conflicts = check_draft_conflicts(session, invoice_ids, exclude_payment_id=draft.id)

    for raw, invoice_id in zip(raw_applications, invoice_ids):
        row = session.get(Invoice, invoice_id)
        if row is None:
            raise ValidationError(f'Invoice {invoice_id} not found', field='invoice_id')
        application = allocate_invoice(
            draft, invoice_draft(row), conflicts,
            application_date=parse_date(raw.get('application_date'), 'application_date'),
        )
        amount = parse_decimal(raw.get('applied_amount'), 'applied_amount')
        if amount is not None and amount != application.applied_amount:
            payment_core.set_applied_amount(draft, invoice_id, amount)
    # without an explicit amount the payment is the sum of what it applies
    payment_core.recompute_payment_amount(draft)

    if payload.get('payment_amount') not in (None, ''):
        payment_core.set_payment_amount(
            draft, parse_decimal(payload.get('payment_amount'), 'payment_amount')
        )
    elif existing is not None and 'applications' not in payload:
        draft.payment_amount = existing.payment_amount
    return draft


def _write_payment(row: Payment, draft: PaymentDraft) -> Payment:
    previous_number = row.number
    for key in HEADER_FIELDS:
        setattr(row, key, getattr(draft, key))
    row.number = draft.number or previous_number or None
    row.payment_amount = draft.payment_amount

    wanted = {app.invoice_id: app for app in draft.applications}
    for application in list(row.applications):
        if application.invoice_id not in wanted:
            row.applications.remove(application)
    current = {application.invoice_id: application for application in row.applications}
    for invoice_id, app in wanted.items():
        application = current.get(invoice_id)
        if application is None:
            row.applications.append(PaymentApplication(
                invoice_id=invoice_id,
                applied_amount=app.applied_amount,
                application_date=app.application_date,
            ))
        else:
            application.applied_amount = app.applied_amount
            application.application_date = app.application_date
    return row


def _save_draft(row: Payment, draft: PaymentDraft, session) -> Payment:
    """Write the draft, assign its number, then reserve or reject its invoices."""
    previous_ids = {application.invoice_id for application in row.applications}
    _write_payment(row, draft)
    if row.id is None:
        session.add(row)
    session.flush()
    if not row.number:
        row.number = payment_number_for(row.id)
        session.flush()

    current_ids = [app.invoice_id for app in draft.applications]
    reserve_or_reject(session, current_ids, row.id)
    removed = previous_ids - set(current_ids)
    if removed:
        release_reservations(session, row.id, removed)
    return row


def _commit(session, what: str):
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        error_msg = str(e.orig)
        if 'number' in error_msg.lower():
            raise ValidationError(f'{what}: payment number already exists', field='number')
        raise PayablesError(f'{what}: integrity error: {error_msg}')


def _check_number_unique(draft: PaymentDraft, session) -> None:
    if not draft.number:
        return
    query = session.query(Payment.id).filter(Payment.number == draft.number)
    if draft.id is not None:
        query = query.filter(Payment.id != draft.id)
    if query.first():
        raise ValidationError(f'Payment number "{draft.number}" already exists', field='number')


def _wants_finalize(payload: dict) -> bool:
    return str(payload.get('status') or '').upper() == PaymentStatus.PAID.value


def create_payment(payload: dict, session) -> Payment:
    """
    Create a DRAFT payment and reserve its invoices.

    A payload with ``status: PAID`` is finalized in the same transaction.

    Raises:
        ValidationError: bad header, ineligible invoice or over-application
        ConflictError: an invoice is held by another draft payment
    """
    try:
        draft = _build_draft(payload, session)
        _check_number_unique(draft, session)
        row = _save_draft(Payment(status=PaymentStatus.DRAFT), draft, session)
        if _wants_finalize(payload):
            _finalize(row, session)
        _commit(session, 'Create payment')
        logger.info(
            f"[PAYMENTS] Created {row.number} ({row.status.value}) "
            f"amount={money_2(row.payment_amount)} applications={len(row.applications)}"
        )
        return row

    except PayablesError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception("[PAYMENTS] Create failed")
        raise


def update_payment(payment_id: int, payload: dict, session) -> Payment:
    """
    Update a DRAFT payment. PAID payments are final and reject every update.

    Reservations follow the applications: new invoices are reserved (or the
    update is rejected), removed ones are released.
    """
    try:
        row = get_payment(session, payment_id, for_update=True)
        if row.status is PaymentStatus.PAID:
            raise ValidationError(f'Payment {row.number} is finalized and cannot be changed')

        draft = _build_draft(payload, session, existing=row)
        _check_number_unique(draft, session)
        _save_draft(row, draft, session)
        if _wants_finalize(payload):
            _finalize(row, session)
        _commit(session, 'Update payment')
        logger.info(f"[PAYMENTS] Updated {row.number} ({row.status.value})")
        return row

    except PayablesError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"[PAYMENTS] Update of payment {payment_id} failed")
        raise


def _finalize(row: Payment, session) -> Payment:
    """
    DRAFT -> PAID inside the caller's transaction.

    1. Authoritative conflict check (re-reserve every invoice)
    2. Re-validate every application against the invoice's current amount due
    3. Increase each invoice's amount_paid and re-derive its status
    4. Release the reservations and mark the payment PAID
    """
    invoice_ids = [application.invoice_id for application in row.applications]
    reserve_or_reject(session, invoice_ids, row.id)

    draft = PaymentDraft(
        id=row.id, number=row.number, supplier_id=row.supplier_id,
        payment_date=row.payment_date, currency_code=row.currency_code,
        exchange_rate=row.exchange_rate, payment_amount=row.payment_amount,
    )
    invoices = {}
    for application in row.applications:
        invoice = get_invoice(session, application.invoice_id, for_update=True)
        invoices[invoice.id] = invoice
        current = invoice_draft(invoice)
        if invoice.supplier_id != row.supplier_id:
            raise ValidationError(f'Invoice {invoice.number} belongs to another supplier', field='invoice_id')
        if invoice.approval_status is not ApprovalStatus.APPROVED or invoice.status in (
            InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.VOID
        ):
            raise ValidationError(
                f'Invoice {invoice.number} is no longer eligible for payment', field='invoice_id'
            )
        draft.applications.append(ApplicationDraft(
            invoice_id=invoice.id,
            invoice_number=invoice.number,
            applied_amount=application.applied_amount,
            amount_due=max(current.amount_due, ZERO),
            application_date=application.application_date,
        ))

    posted = payment_core.finalize(draft)

    for posted_application in posted.applications:
        record_invoice_payment(invoices[posted_application.invoice_id], posted_application.applied_amount)
    for application in row.applications:
        if application.application_date is None:
            application.application_date = row.payment_date

    release_reservations(session, row.id)
    row.status = PaymentStatus.PAID
    row.finalized_at = datetime.now(timezone.utc)
    session.flush()
    return row


def finalize_payment(payment_id: int, session) -> Payment:
    """Finalize a DRAFT payment (see _finalize)."""
    try:
        row = get_payment(session, payment_id, for_update=True)
        if row.status is PaymentStatus.PAID:
            raise ValidationError(f'Payment {row.number} is already finalized')
        _finalize(row, session)
        _commit(session, 'Finalize payment')
        logger.info(f"[PAYMENTS] Finalized {row.number} amount={money_2(row.payment_amount)}")
        return row

    except PayablesError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"[PAYMENTS] Finalize of payment {payment_id} failed")
        raise


def delete_payment(payment_id: int, session) -> None:
    """Delete a DRAFT payment and release its reservations."""
    try:
        row = get_payment(session, payment_id, for_update=True)
        if row.status is PaymentStatus.PAID:
            raise ValidationError(f'Payment {row.number} is finalized and cannot be deleted')
        number = row.number
        release_reservations(session, row.id)
        session.delete(row)
        session.commit()
        logger.info(f"[PAYMENTS] Deleted draft {number}")
    except PayablesError:
        session.rollback()
        raise
