"""
Unit tests for the allocation engine.
"""
from datetime import date
from decimal import Decimal

import pytest

from payables.core.allocation import (
    allocate_invoice, deallocate_invoice, eligible_invoices, is_eligible,
    over_allocations, refresh_allocations,
)
from payables.core.conflicts import DraftConflict
from payables.core.payment import set_applied_amount
from payables.core.types import ApprovalStatus, InvoiceDraft, InvoiceStatus, PaymentDraft
from payables.exceptions import ConflictError, ValidationError


def _invoice(invoice_id, total='1100', paid='0', supplier_id=1,
             status=InvoiceStatus.PENDING, approval=ApprovalStatus.APPROVED):
    return InvoiceDraft(
        id=invoice_id, number=f'INV{invoice_id:08d}', supplier_id=supplier_id,
        total_amount=Decimal(total), amount_paid=Decimal(paid),
        status=status, approval_status=approval,
    )


def _payment(supplier_id=1, payment_id=None):
    return PaymentDraft(id=payment_id, number='PAY00000009', supplier_id=supplier_id,
                        payment_date=date(2024, 3, 15))


class TestEligibility:
    """amount due > 0, approved, not PAID/CANCELLED/VOID."""

    def test_open_approved_invoice_is_eligible(self):
        assert is_eligible(_invoice(1)) is True
        assert is_eligible(_invoice(1, paid='100', status=InvoiceStatus.OPEN)) is True

    @pytest.mark.parametrize('invoice', [
        _invoice(1, paid='1100'),
        _invoice(1, approval=ApprovalStatus.PENDING),
        _invoice(1, approval=ApprovalStatus.REJECTED),
        _invoice(1, status=InvoiceStatus.CANCELLED),
        _invoice(1, status=InvoiceStatus.VOID),
        _invoice(1, status=InvoiceStatus.PAID),
    ])
    def test_ineligible_invoices(self, invoice):
        assert is_eligible(invoice) is False

    def test_listing_filters_supplier_and_held_invoices(self):
        invoices = [_invoice(1), _invoice(2), _invoice(3, supplier_id=2), _invoice(4, paid='1100')]
        held = [DraftConflict(invoice_id=2, invoice_number='INV00000002', payment_id=7, payment_number='PAY7')]
        result = eligible_invoices(invoices, supplier_id=1, conflicts=held)
        assert [invoice.id for invoice in result] == [1]


class TestAllocate:
    """Adding an invoice applies its full amount due."""

    def test_default_applied_amount_is_amount_due(self):
        payment = _payment()
        application = allocate_invoice(payment, _invoice(1, paid='300', status=InvoiceStatus.OPEN))
        assert application.applied_amount == Decimal('800')
        assert application.application_date == date(2024, 3, 15)
        assert payment.payment_amount == Decimal('800')

    def test_conflict_rejects_allocation(self):
        """An invoice held by another draft cannot be added."""
        payment = _payment(payment_id=1)
        conflicts = [DraftConflict(invoice_id=5, invoice_number='INV00000005', payment_id=2,
                                   payment_number='PAY00000002')]
        with pytest.raises(ConflictError) as exc:
            allocate_invoice(payment, _invoice(5), conflicts)
        assert exc.value.payment_number == 'PAY00000002'
        assert exc.value.invoice_number == 'INV00000005'
        assert payment.applications == []

    def test_conflict_on_other_invoice_is_ignored(self):
        payment = _payment()
        conflicts = [DraftConflict(invoice_id=6, invoice_number='INV6', payment_id=2, payment_number='PAY2')]
        allocate_invoice(payment, _invoice(5), conflicts)
        assert len(payment.applications) == 1

    def test_ineligible_invoice_is_rejected(self):
        with pytest.raises(ValidationError):
            allocate_invoice(_payment(), _invoice(1, approval=ApprovalStatus.PENDING))

    def test_other_supplier_is_rejected(self):
        with pytest.raises(ValidationError):
            allocate_invoice(_payment(supplier_id=1), _invoice(1, supplier_id=2))

    def test_deallocate_recomputes_payment_amount(self):
        payment = _payment()
        allocate_invoice(payment, _invoice(1))
        allocate_invoice(payment, _invoice(2, total='50'))
        deallocate_invoice(payment, 1)
        assert payment.payment_amount == Decimal('50')


class TestRefresh:
    """Re-clamping only ever lowers applied amounts."""

    def test_clamps_down_to_current_amount_due(self):
        payment = _payment()
        allocate_invoice(payment, _invoice(1))
        adjustments = refresh_allocations(payment, [_invoice(1, paid='400', status=InvoiceStatus.OPEN)])

        assert payment.applications[0].applied_amount == Decimal('700')
        assert len(adjustments) == 1
        assert adjustments[0].previous_amount == Decimal('1100')
        assert adjustments[0].reduced_by == Decimal('400')
        assert payment.payment_amount == Decimal('1100')
        assert payment.unapplied_amount == Decimal('400')

    def test_never_increases(self):
        payment = _payment()
        allocate_invoice(payment, _invoice(1))
        set_applied_amount(payment, 1, Decimal('300'))
        adjustments = refresh_allocations(payment, [_invoice(1, total='5000')])
        assert adjustments == []
        assert payment.applications[0].applied_amount == Decimal('300')
        assert payment.applications[0].amount_due == Decimal('5000')

    def test_over_allocations_reported(self):
        payment = _payment()
        allocate_invoice(payment, _invoice(1))
        problems = over_allocations(payment, [_invoice(1, paid='1000', status=InvoiceStatus.OPEN)])
        assert len(problems) == 1
        assert '1,100.00' in problems[0]
