"""Invoice aggregate: line collection and derived header totals.

Header totals are always re-summed over every line; nothing is kept as a
running delta. A line's own amounts are computed only when that line's inputs
change, so amounts taken from a receipt survive edits to other lines.
"""
from decimal import Decimal
from typing import Iterable

from payables.core.types import (
    InvoiceDraft, InvoiceLineDraft, InvoiceStatus, TERMINAL_INVOICE_STATUSES
)
from payables.exceptions import ValidationError
from payables.utils.formatters import money_2
from payables.utils.number_format import ZERO, parse_decimal, parse_int

HUNDRED = Decimal('100')

EDITABLE_LINE_FIELDS = ('description', 'quantity', 'unit_price', 'tax_rate', 'item_id')


def new_invoice(**header) -> InvoiceDraft:
    """A fresh DRAFT invoice, which always starts with one blank line."""
    invoice = InvoiceDraft(**header)
    if not invoice.lines:
        invoice.lines.append(InvoiceLineDraft(line_number=1))
    recompute_totals(invoice)
    return invoice


def compute_line(line: InvoiceLineDraft) -> InvoiceLineDraft:
    """line_amount = quantity x unit_price; tax = line_amount x rate / 100."""
    line.line_amount = line.quantity * line.unit_price
    line.tax_amount = line.line_amount * (line.tax_rate or ZERO) / HUNDRED
    return line


def sum_totals(invoice: InvoiceDraft) -> InvoiceDraft:
    """Header subtotal, tax and total from the line amounts as they stand."""
    invoice.subtotal = sum((line.line_amount for line in invoice.lines), ZERO)
    invoice.tax_amount = sum((line.tax_amount for line in invoice.lines), ZERO)
    invoice.total_amount = invoice.subtotal + invoice.tax_amount
    return invoice


def recompute_totals(invoice: InvoiceDraft) -> InvoiceDraft:
    """Recompute every line, then the header."""
    for line in invoice.lines:
        compute_line(line)
    return sum_totals(invoice)


def renumber_lines(invoice: InvoiceDraft) -> None:
    for index, line in enumerate(invoice.lines, start=1):
        line.line_number = index


def ensure_lines_editable(invoice: InvoiceDraft) -> None:
    if invoice.status not in (InvoiceStatus.DRAFT, InvoiceStatus.PENDING) or invoice.amount_paid > 0:
        raise ValidationError(
            f'Invoice {invoice.number or invoice.id} can no longer be edited '
            f'(status {invoice.status.value})'
        )


def _clean_line_values(changes: dict) -> dict:
    """Validate line values with the editing-time rules (zero is tolerated)."""
    unknown = set(changes) - set(EDITABLE_LINE_FIELDS)
    if unknown:
        raise ValidationError(f'Unknown line field(s): {", ".join(sorted(unknown))}')

    cleaned = {}
    for name, value in changes.items():
        if name == 'description':
            cleaned[name] = (value or '').strip()
        elif name == 'item_id':
            cleaned[name] = parse_int(value, name)
        else:
            number = parse_decimal(value, name, ZERO)
            if number < 0:
                raise ValidationError(f'{name} cannot be negative', field=name)
            cleaned[name] = number
    return cleaned


def line_from_dict(data: dict, line_number: int) -> InvoiceLineDraft:
    """Build a line from a wire dict; derived amounts in the dict are ignored."""
    values = {name: data.get(name) for name in EDITABLE_LINE_FIELDS if name in data}
    return compute_line(InvoiceLineDraft(line_number=line_number, **_clean_line_values(values)))


def add_line(invoice: InvoiceDraft, **values) -> InvoiceLineDraft:
    """Append a line, numbered after the last one, and recompute totals."""
    ensure_lines_editable(invoice)
    cleaned = _clean_line_values(values)
    line = InvoiceLineDraft(line_number=len(invoice.lines) + 1, **cleaned)
    invoice.lines.append(line)
    compute_line(line)
    sum_totals(invoice)
    return line


def get_line(invoice: InvoiceDraft, line_number: int) -> InvoiceLineDraft:
    for line in invoice.lines:
        if line.line_number == line_number:
            return line
    raise ValidationError(f'Line {line_number} does not exist', field='line_number')


def update_line(invoice: InvoiceDraft, line_number: int, **changes) -> InvoiceLineDraft:
    ensure_lines_editable(invoice)
    line = get_line(invoice, line_number)
    cleaned = _clean_line_values(changes)
    for name, value in cleaned.items():
        setattr(line, name, value)
    compute_line(line)
    sum_totals(invoice)
    return line


def remove_line(invoice: InvoiceDraft, line_number: int) -> InvoiceLineDraft:
    """Remove a line. The last remaining line cannot be removed."""
    ensure_lines_editable(invoice)
    line = get_line(invoice, line_number)
    if len(invoice.lines) == 1:
        raise ValidationError('An invoice must keep at least one line', field='lines')
    invoice.lines.remove(line)
    renumber_lines(invoice)
    sum_totals(invoice)
    return line


def replace_lines(invoice: InvoiceDraft, lines: Iterable[InvoiceLineDraft]) -> None:
    """Swap the whole line collection (used by imports and saves)."""
    new_lines = list(lines)
    if not new_lines:
        raise ValidationError('An invoice must keep at least one line', field='lines')
    invoice.lines = new_lines
    renumber_lines(invoice)
    sum_totals(invoice)


def submission_errors(invoice: InvoiceDraft) -> list:
    """Every reason this invoice cannot be submitted (empty when it can)."""
    errors = []
    if not invoice.supplier_id:
        errors.append('Supplier is required')
    if not invoice.invoice_date:
        errors.append('Invoice date is required')
    if not invoice.lines:
        errors.append('At least one line is required')
    for line in invoice.lines:
        prefix = f'Line {line.line_number}'
        if not (line.description or '').strip():
            errors.append(f'{prefix}: description is required')
        if line.quantity is None or line.quantity <= 0:
            errors.append(f'{prefix}: quantity must be greater than 0')
        if line.unit_price is None or line.unit_price <= 0:
            errors.append(f'{prefix}: unit price must be greater than 0')
    return errors


def validate_for_submission(invoice: InvoiceDraft) -> None:
    """Submission-time validation, stricter than the editing-time rules."""
    errors = submission_errors(invoice)
    if errors:
        raise ValidationError(errors[0], payload={'errors': errors})


def derive_status(invoice: InvoiceDraft) -> InvoiceStatus:
    """Lifecycle status from amount due and payment history."""
    if invoice.status in TERMINAL_INVOICE_STATUSES:
        return invoice.status
    if invoice.total_amount > 0 and invoice.amount_due <= 0:
        return InvoiceStatus.PAID
    if invoice.amount_paid > 0:
        return InvoiceStatus.OPEN
    if invoice.status is InvoiceStatus.DRAFT:
        return InvoiceStatus.DRAFT
    return InvoiceStatus.PENDING


def submit(invoice: InvoiceDraft) -> InvoiceDraft:
    """DRAFT -> PENDING after submission validation."""
    if invoice.status is not InvoiceStatus.DRAFT:
        raise ValidationError(
            f'Only DRAFT invoices can be submitted (status {invoice.status.value})'
        )
    sum_totals(invoice)
    validate_for_submission(invoice)
    invoice.status = InvoiceStatus.PENDING
    return invoice


def record_payment(invoice: InvoiceDraft, amount: Decimal) -> InvoiceDraft:
    """Add a committed payment amount and re-derive the status."""
    if amount <= 0:
        raise ValidationError('Applied amount must be greater than 0', field='applied_amount')
    if amount > invoice.amount_due:
        raise ValidationError(
            f'Applied amount {money_2(amount)} exceeds the amount due '
            f'{money_2(invoice.amount_due)} on invoice {invoice.number}',
            field='applied_amount',
        )
    invoice.amount_paid += amount
    invoice.status = derive_status(invoice)
    return invoice
