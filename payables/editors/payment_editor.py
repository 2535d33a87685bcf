"""Payment editor: one draft payment being allocated against invoices."""
import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from payables.core import payment as payment_core
from payables.core.allocation import (
    ClampAdjustment, allocate_invoice, deallocate_invoice, eligible_invoices, refresh_allocations
)
from payables.core.drafts import should_persist_on_close
from payables.core.types import InvoiceDraft, PaymentDraft, PostedPayment
from payables.exceptions import ConflictError, ValidationError

logger = logging.getLogger(__name__)


class PaymentEditor:
    """
    Holds one DRAFT payment while it is edited.

    A PAID payment is never opened here: the authority returns it as a
    PostedPayment and ``open`` refuses it. After ``finalize`` the editor holds
    the PostedPayment and every further mutation is rejected.
    """

    def __init__(self, client, payment: PaymentDraft, is_new: bool = False):
        if isinstance(payment, PostedPayment):
            raise ValidationError(f'Payment {payment.number} is finalized and cannot be edited')
        self.client = client
        self.payment = payment
        self.is_new = is_new
        self.available: List[InvoiceDraft] = []

    @classmethod
    async def new(cls, client, supplier_id: int, payment_date: Optional[date] = None,
                  currency_code='USD', **header) -> 'PaymentEditor':
        """A new draft with its number already assigned by the authority."""
        number = await client.next_payment_number()
        payment = PaymentDraft(
            number=number,
            supplier_id=supplier_id,
            payment_date=payment_date or date.today(),
            currency_code=currency_code,
            exchange_rate=header.pop('exchange_rate', Decimal('1')),
            **header
        )
        return cls(client, payment, is_new=True)

    @classmethod
    async def open(cls, client, payment_id: int) -> 'PaymentEditor':
        return cls(client, await client.get_payment(payment_id))

    @property
    def is_finalized(self) -> bool:
        return isinstance(self.payment, PostedPayment)

    async def load_available_invoices(self) -> List[InvoiceDraft]:
        """Eligible invoices of the supplier that no other draft holds (advisory)."""
        invoices = await self.client.list_eligible_invoices(
            self.payment.supplier_id, exclude_payment_id=self.payment.id
        )
        applied = {app.invoice_id for app in self.payment.applications}
        self.available = [
            invoice for invoice in eligible_invoices(invoices, self.payment.supplier_id)
            if invoice.id not in applied
        ]
        return self.available

    async def add_invoice(self, invoice: InvoiceDraft):
        """Re-check draft conflicts with the authority, then apply the full amount due."""
        payment_core.ensure_draft(self.payment)
        conflicts = await self.client.check_draft_conflicts(
            [invoice.id], exclude_payment_id=self.payment.id
        )
        try:
            application = allocate_invoice(self.payment, invoice, conflicts)
        except ConflictError as e:
            logger.warning(f"[CONFLICT] {e.message}")
            raise
        self.available = [i for i in self.available if i.id != invoice.id]
        return application

    def remove_invoice(self, invoice_id: int):
        return deallocate_invoice(self.payment, invoice_id)

    def set_applied_amount(self, invoice_id: int, amount: Decimal):
        return payment_core.set_applied_amount(self.payment, invoice_id, amount)

    def set_payment_amount(self, amount: Decimal):
        return payment_core.set_payment_amount(self.payment, amount)

    async def refresh(self) -> List[ClampAdjustment]:
        """Re-read every applied invoice and clamp applied amounts down to what is due."""
        payment_core.ensure_draft(self.payment)
        invoices = await asyncio.gather(
            *(self.client.get_invoice(app.invoice_id) for app in self.payment.applications)
        )
        adjustments = refresh_allocations(self.payment, invoices)
        for adjustment in adjustments:
            logger.info(f"[PAYMENTS] {adjustment}")
        return adjustments

    async def save(self) -> PaymentDraft:
        """Create or update the draft; the authority's copy replaces ours."""
        payment_core.ensure_draft(self.payment)
        if self.is_new:
            saved = await self.client.create_payment(self.payment)
        else:
            saved = await self.client.update_payment(self.payment)
        self.payment = saved
        self.is_new = False
        return saved

    async def finalize(self) -> PostedPayment:
        """Save the draft, then ask the authority to move it to PAID."""
        payment_core.validate_for_finalize(self.payment)
        await self.save()
        posted = await self.client.finalize_payment(self.payment.id)
        self.payment = posted
        logger.info(f"[PAYMENTS] {posted.number} finalized")
        return posted

    async def close(self) -> bool:
        """
        Closing the editor. A never-saved draft that is complete is saved;
        anything else is discarded. Returns True when it was saved.
        """
        if not should_persist_on_close(self.payment, self.is_new):
            return False
        await self.save()
        logger.info(f"[PAYMENTS] Draft {self.payment.number} saved on close")
        return True
