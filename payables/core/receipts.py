"""Derives invoice lines from a goods receipt."""
from dataclasses import dataclass

from payables.core.invoice import ensure_lines_editable, sum_totals
from payables.core.types import InvoiceDraft, InvoiceLineDraft, ReceiptData
from payables.utils.number_format import ZERO

HUNDRED = 100


@dataclass(frozen=True)
class ReceiptImport:
    imported: int
    dropped: int

    @property
    def replaced_lines(self) -> bool:
        return self.imported > 0


def receipt_lines_to_invoice_lines(receipt: ReceiptData) -> list:
    """
    Accepted receipt lines as invoice lines, numbered 1..n.

    Lines with nothing accepted are dropped. Missing amounts are filled in:
    line_amount = quantity x unit_price, tax_amount = line_amount x rate / 100.
    Amounts the receipt already carries are kept as given.
    """
    lines = []
    for source in receipt.lines:
        if source.quantity_accepted is None or source.quantity_accepted <= 0:
            continue
        line_amount = source.line_amount
        if line_amount is None:
            line_amount = source.quantity_accepted * source.unit_price
        tax_rate = source.tax_rate if source.tax_rate is not None else ZERO
        tax_amount = source.tax_amount
        if tax_amount is None:
            tax_amount = line_amount * tax_rate / HUNDRED
        lines.append(InvoiceLineDraft(
            line_number=len(lines) + 1,
            item_id=source.item_id,
            description=source.description,
            quantity=source.quantity_accepted,
            unit_price=source.unit_price,
            tax_rate=tax_rate,
            line_amount=line_amount,
            tax_amount=tax_amount,
        ))
    return lines


def import_receipt(invoice: InvoiceDraft, receipt: ReceiptData) -> ReceiptImport:
    """
    Seed an invoice from a receipt.

    When no line survives the filter the invoice keeps its current lines, so a
    partial or malformed receipt never wipes what is already there. Header
    fields are only copied where the invoice has nothing yet; currency and
    exchange rate are copied as a pair. Only an editable invoice (DRAFT or
    PENDING, nothing paid) can take an import.
    """
    ensure_lines_editable(invoice)
    lines = receipt_lines_to_invoice_lines(receipt)
    dropped = len(receipt.lines) - len(lines)

    if invoice.supplier_id is None:
        invoice.supplier_id = receipt.supplier_id
    if invoice.site_id is None:
        invoice.site_id = receipt.site_id
    if not invoice.currency_code and receipt.currency_code:
        invoice.currency_code = receipt.currency_code
        invoice.exchange_rate = receipt.exchange_rate
    elif invoice.exchange_rate is None and invoice.currency_code == receipt.currency_code:
        invoice.exchange_rate = receipt.exchange_rate

    if not lines:
        return ReceiptImport(imported=0, dropped=dropped)

    invoice.lines = lines
    invoice.source_receipt_id = receipt.id
    # receipt-supplied amounts are kept, so sum rather than recompute the lines
    sum_totals(invoice)
    return ReceiptImport(imported=len(lines), dropped=dropped)
