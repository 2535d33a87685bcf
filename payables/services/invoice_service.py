"""Invoice service with transactional logic."""
import logging
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from payables.core import invoice as invoice_core
from payables.core.terms import apply_terms_edit, default_due_date
from payables.core.types import EditSource, InvoiceDraft
from payables.exceptions import PayablesError, ValidationError, NotFoundError
from payables.models import (
    Invoice, InvoiceLine, Supplier, SupplierSite, Receipt, Payment, PaymentApplication,
    InvoiceStatus, ApprovalStatus, PaymentStatus
)
from payables.services.aggregates import invoice_draft
from payables.utils.number_format import parse_date, parse_int

logger = logging.getLogger(__name__)

HEADER_FIELDS = (
    'number', 'supplier_id', 'site_id', 'source_receipt_id', 'invoice_date',
    'due_date', 'payment_terms', 'currency_code', 'exchange_rate', 'notes',
)

SETTABLE_STATUSES = (InvoiceStatus.CANCELLED, InvoiceStatus.VOID)


def invoice_number_for(invoice_id: int) -> str:
    return f'INV{invoice_id:08d}'


def parse_edit_source(value):
    if value is None or value == '':
        return None
    try:
        return EditSource(str(value).lower())
    except ValueError:
        raise ValidationError(f'Invalid edit_source: {value!r}', field='edit_source')


def parse_invoice_status(value):
    try:
        return InvoiceStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f'Invalid invoice status: {value!r}', field='status')


def parse_approval_status(value):
    try:
        return ApprovalStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f'Invalid approval status: {value!r}', field='approval_status')


def get_invoice(session, invoice_id: int, for_update=False) -> Invoice:
    query = session.query(Invoice).filter(Invoice.id == invoice_id)
    if for_update:
        query = query.with_for_update()
    invoice = query.first()
    if not invoice:
        raise NotFoundError(f'Invoice {invoice_id} not found')
    return invoice


def list_invoices(session, status=None, supplier_id=None, due_from=None, due_to=None):
    """Invoices filtered by status, supplier and due-date range, newest first."""
    query = session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == parse_invoice_status(status))
    if supplier_id:
        query = query.filter(Invoice.supplier_id == parse_int(supplier_id, 'supplier_id'))
    due_from = parse_date(due_from, 'due_from')
    due_to = parse_date(due_to, 'due_to')
    if due_from:
        query = query.filter(Invoice.due_date >= due_from)
    if due_to:
        query = query.filter(Invoice.due_date <= due_to)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()


def _overlay_header(draft: InvoiceDraft, payload: dict) -> None:
    """Copy the header fields present in the payload onto the draft."""
    parsed = InvoiceDraft.from_dict({key: payload.get(key) for key in HEADER_FIELDS})
    for key in HEADER_FIELDS:
        if key in payload:
            setattr(draft, key, getattr(parsed, key))


def _lines_from_payload(raw_lines):
    return [
        invoice_core.line_from_dict(raw or {}, line_number=index)
        for index, raw in enumerate(raw_lines or [], start=1)
    ]


def _check_references(draft: InvoiceDraft, session) -> None:
    if not draft.supplier_id:
        raise ValidationError('Supplier is required', field='supplier_id')
    if session.get(Supplier, draft.supplier_id) is None:
        raise ValidationError(f'Supplier {draft.supplier_id} not found', field='supplier_id')
    if draft.site_id:
        site = session.get(SupplierSite, draft.site_id)
        if site is None or site.supplier_id != draft.supplier_id:
            raise ValidationError(
                f'Site {draft.site_id} does not belong to supplier {draft.supplier_id}',
                field='site_id',
            )
    if draft.source_receipt_id and session.get(Receipt, draft.source_receipt_id) is None:
        raise ValidationError(f'Receipt {draft.source_receipt_id} not found', field='source_receipt_id')
    if draft.exchange_rate is not None and draft.exchange_rate <= 0:
        raise ValidationError('Exchange rate must be greater than 0', field='exchange_rate')
    if draft.payment_terms is not None and draft.payment_terms < 0:
        raise ValidationError('Payment terms cannot be negative', field='payment_terms')


def _check_number_unique(draft: InvoiceDraft, session, invoice_id=None) -> None:
    if not draft.number:
        return
    query = session.query(Invoice.id).filter(Invoice.number == draft.number)
    if invoice_id is not None:
        query = query.filter(Invoice.id != invoice_id)
    if query.first():
        raise ValidationError(f'Invoice number "{draft.number}" already exists', field='number')


def _write_invoice(row: Invoice, draft: InvoiceDraft, with_lines=True) -> Invoice:
    """Copy the core aggregate onto the ORM row (lines are replaced)."""
    previous_number = row.number
    for key in HEADER_FIELDS:
        setattr(row, key, getattr(draft, key))
    row.number = draft.number or previous_number or None
    row.subtotal = draft.subtotal
    row.tax_amount = draft.tax_amount
    row.total_amount = draft.total_amount
    row.amount_paid = draft.amount_paid
    row.status = draft.status
    row.approval_status = draft.approval_status

    if with_lines:
        row.lines.clear()
        for line in draft.lines:
            row.lines.append(InvoiceLine(
                line_number=line.line_number,
                item_id=line.item_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_amount=line.line_amount,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount,
            ))
    return row


def _commit(session, what: str):
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        error_msg = str(e.orig)
        if 'number' in error_msg.lower():
            raise ValidationError(f'{what}: invoice number already exists', field='number')
        raise PayablesError(f'{what}: integrity error: {error_msg}')


def create_invoice(payload: dict, session) -> Invoice:
    """
    Create a DRAFT invoice with its lines.

    Steps:
    1. Parse header and apply defaults (currency, exchange rate, terms)
    2. Synchronize due date / payment terms
    3. Parse lines (an invoice always has at least one) and recompute totals
    4. Persist invoice + lines; number it INV######## when none was given

    Args:
        payload: invoice dict as produced by InvoiceDraft.to_dict(), plus an
            optional ``edit_source`` naming the date/terms field last edited.
        session: SQLAlchemy session

    Returns:
        The persisted Invoice.

    Raises:
        ValidationError: for bad input or a duplicate number
    """
    try:
        config = current_app.config
        draft = invoice_core.new_invoice(lines=_lines_from_payload(payload.get('lines')))
        _overlay_header(draft, payload)

        if not draft.invoice_date:
            draft.invoice_date = date.today()
        if not draft.currency_code:
            draft.currency_code = config.get('DEFAULT_CURRENCY_CODE', 'USD')
        if draft.exchange_rate is None:
            draft.exchange_rate = Decimal('1')

        edit_source = parse_edit_source(payload.get('edit_source'))
        if edit_source is None and draft.due_date and draft.payment_terms is None:
            edit_source = EditSource.DUE_DATE
        if draft.payment_terms is None and draft.due_date is None:
            draft.payment_terms = config.get('DEFAULT_PAYMENT_TERMS_DAYS', 30)
        apply_terms_edit(draft, edit_source)
        if draft.due_date is None:
            draft.due_date = default_due_date(draft.invoice_date, draft.payment_terms)

        invoice_core.recompute_totals(draft)
        _check_references(draft, session)
        _check_number_unique(draft, session)

        row = _write_invoice(Invoice(), draft)
        session.add(row)
        session.flush()
        if not row.number:
            row.number = invoice_number_for(row.id)

        _commit(session, 'Create invoice')
        logger.info(f"[INVOICES] Created {row.number} total={row.total_amount}")
        return row

    except PayablesError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception("[INVOICES] Create failed")
        raise


def update_invoice(invoice_id: int, payload: dict, session) -> Invoice:
    """
    Update header and lines of an editable invoice.

    Only DRAFT/PENDING invoices with nothing paid can change. Lines, when
    present in the payload, replace the stored ones. A PENDING invoice must
    still pass the submission rules afterwards.
    """
    try:
        row = get_invoice(session, invoice_id, for_update=True)
        draft = invoice_draft(row)
        invoice_core.ensure_lines_editable(draft)

        _overlay_header(draft, payload)
        apply_terms_edit(draft, parse_edit_source(payload.get('edit_source')))
        if 'lines' in payload:
            invoice_core.replace_lines(draft, _lines_from_payload(payload.get('lines')))
        invoice_core.sum_totals(draft)

        _check_references(draft, session)
        _check_number_unique(draft, session, invoice_id=row.id)
        if draft.status is InvoiceStatus.PENDING:
            invoice_core.validate_for_submission(draft)

        _write_invoice(row, draft, with_lines='lines' in payload)
        _commit(session, 'Update invoice')
        logger.info(f"[INVOICES] Updated {row.number}")
        return row

    except PayablesError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception(f"[INVOICES] Update of invoice {invoice_id} failed")
        raise


def submit_invoice(invoice_id: int, session) -> Invoice:
    """Run submission validation and move the invoice DRAFT -> PENDING."""
    try:
        row = get_invoice(session, invoice_id, for_update=True)
        draft = invoice_draft(row)
        invoice_core.submit(draft)
        _write_invoice(row, draft, with_lines=False)
        _commit(session, 'Submit invoice')
        logger.info(f"[INVOICES] Submitted {row.number}")
        return row
    except PayablesError:
        session.rollback()
        raise


def set_invoice_status(invoice_id: int, payload: dict, session) -> Invoice:
    """
    External approval and terminal transitions.

    ``approval_status`` takes PENDING/APPROVED/REJECTED. ``status`` only takes
    the terminal values CANCELLED and VOID; the rest of the lifecycle is
    derived from payments.
    """
    try:
        row = get_invoice(session, invoice_id, for_update=True)
        if 'status' not in payload and 'approval_status' not in payload:
            raise ValidationError('Nothing to change: send status or approval_status')

        if row.status in SETTABLE_STATUSES:
            raise ValidationError(f'Invoice {row.number} is {row.status.value} and cannot change')

        if payload.get('approval_status'):
            row.approval_status = parse_approval_status(payload['approval_status'])

        if payload.get('status'):
            value = str(payload['status']).upper()
            if value == 'APPROVED':
                raise ValidationError('APPROVED is an approval status, not an invoice status', field='status')
            status = parse_invoice_status(value)
            if status not in SETTABLE_STATUSES:
                raise ValidationError(
                    f'Status {status.value} is derived and cannot be set directly', field='status'
                )
            if row.amount_paid > 0:
                raise ValidationError(
                    f'Invoice {row.number} has payments and cannot be {status.value.lower()}',
                    field='status',
                )
            held = (session.query(PaymentApplication)
                    .join(Payment)
                    .filter(PaymentApplication.invoice_id == row.id,
                            Payment.status == PaymentStatus.DRAFT)
                    .first())
            if held:
                raise ValidationError(
                    f'Invoice {row.number} is applied on draft payment {held.payment.number}',
                    field='status',
                )
            row.status = status

        _commit(session, 'Set invoice status')
        logger.info(
            f"[INVOICES] {row.number} status={row.status.value} approval={row.approval_status.value}"
        )
        return row
    except PayablesError:
        session.rollback()
        raise


def invoice_payments(invoice_id: int, session) -> list:
    """Applications of PAID payments against the invoice (payment history)."""
    get_invoice(session, invoice_id)
    rows = (session.query(PaymentApplication, Payment)
            .join(Payment, PaymentApplication.payment_id == Payment.id)
            .filter(PaymentApplication.invoice_id == invoice_id,
                    Payment.status == PaymentStatus.PAID)
            .order_by(Payment.payment_date, Payment.id)
            .all())
    return [
        {
            'payment_id': payment.id,
            'payment_number': payment.number,
            'payment_date': payment.payment_date.isoformat(),
            'payment_method': payment.payment_method,
            'applied_amount': str(application.applied_amount),
            'application_date': application.application_date.isoformat()
            if application.application_date else None,
        }
        for application, payment in rows
    ]


def record_invoice_payment(row: Invoice, amount: Decimal) -> Invoice:
    """Apply a committed amount to a locked invoice row (no commit)."""
    draft = invoice_draft(row)
    invoice_core.record_payment(draft, amount)
    row.amount_paid = draft.amount_paid
    row.status = draft.status
    return row
