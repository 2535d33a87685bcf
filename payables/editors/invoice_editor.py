"""Invoice editor: one InvoiceDraft being edited against the authority."""
import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from payables.client.reference_data import ReferenceDataRepository
from payables.core import invoice as invoice_core
from payables.core.receipts import ReceiptImport, import_receipt
from payables.core.terms import TermsUpdate, apply_terms_edit
from payables.core.types import EditSource, InvoiceDraft

logger = logging.getLogger(__name__)

_UNSET = object()


class InvoiceEditor:
    """
    Holds one invoice while it is edited.

    Local edits (terms, lines) are pure core calls. Remote steps fetch first
    and only then mutate, so a failed call leaves the invoice as it was.
    """

    def __init__(self, client, invoice: InvoiceDraft, reference: Optional[ReferenceDataRepository] = None):
        self.client = client
        self.invoice = invoice
        self.reference = reference or ReferenceDataRepository(client)
        self.reference_data = {}

    @classmethod
    def new(cls, client, default_currency='USD', default_terms=30, **header) -> 'InvoiceEditor':
        """A blank DRAFT invoice dated today, due after the default terms."""
        header.setdefault('invoice_date', date.today())
        header.setdefault('currency_code', default_currency)
        header.setdefault('exchange_rate', Decimal('1'))
        header.setdefault('payment_terms', default_terms)
        invoice = invoice_core.new_invoice(**header)
        apply_terms_edit(invoice, EditSource.PAYMENT_TERMS)
        return cls(client, invoice)

    @classmethod
    async def open(cls, client, invoice_id: int) -> 'InvoiceEditor':
        return cls(client, await client.get_invoice(invoice_id))

    # Terms

    def edit_terms(self, edit_source: EditSource, invoice_date=_UNSET,
                   due_date=_UNSET, payment_terms=_UNSET) -> TermsUpdate:
        """
        Change one of invoice date, due date or payment terms and let the
        synchronizer derive the other side.
        """
        if invoice_date is not _UNSET:
            self.invoice.invoice_date = invoice_date
        if due_date is not _UNSET:
            self.invoice.due_date = due_date
        if payment_terms is not _UNSET:
            self.invoice.payment_terms = payment_terms
        return apply_terms_edit(self.invoice, edit_source)

    # Lines

    def add_line(self, **values):
        return invoice_core.add_line(self.invoice, **values)

    def update_line(self, line_number: int, **changes):
        return invoice_core.update_line(self.invoice, line_number, **changes)

    def remove_line(self, line_number: int):
        return invoice_core.remove_line(self.invoice, line_number)

    # Remote steps

    async def import_receipt(self, receipt_id: int) -> ReceiptImport:
        invoice_core.ensure_lines_editable(self.invoice)
        receipt = await self.client.get_receipt(receipt_id)
        result = import_receipt(self.invoice, receipt)
        if not result.replaced_lines:
            logger.info(
                f"[INVOICES] Receipt {receipt.number or receipt_id} had no accepted lines; "
                f"invoice lines kept"
            )
        return result

    async def load_reference_data(self) -> dict:
        """Suppliers, inventory items and tax rates, fetched concurrently."""
        suppliers, items, tax_rates = await asyncio.gather(
            self.reference.suppliers(),
            self.reference.inventory_items(),
            self.reference.tax_rates(),
        )
        self.reference_data = {'suppliers': suppliers, 'items': items, 'tax_rates': tax_rates}
        if self.invoice.supplier_id:
            self.reference_data['sites'] = await self.reference.supplier_sites(self.invoice.supplier_id)
        return self.reference_data

    async def save(self) -> InvoiceDraft:
        """Create or update the invoice; the authority's copy replaces ours."""
        if self.invoice.id is None:
            saved = await self.client.create_invoice(self.invoice)
        else:
            saved = await self.client.update_invoice(self.invoice)
        self.invoice = saved
        return saved

    async def submit(self) -> InvoiceDraft:
        invoice_core.validate_for_submission(self.invoice)
        await self.save()
        self.invoice = await self.client.submit_invoice(self.invoice.id)
        return self.invoice
