"""
Unit tests for the draft persistence policy.
"""
from datetime import date
from decimal import Decimal

import pytest

from payables.core.drafts import is_complete_draft, should_persist_on_close
from payables.core.types import ApplicationDraft, PaymentDraft, PostedPayment


def _complete():
    return PaymentDraft(
        number='PAY00000003', supplier_id=1, payment_date=date(2024, 3, 15),
        payment_amount=Decimal('100'),
        applications=[ApplicationDraft(invoice_id=1, applied_amount=Decimal('100'), amount_due=Decimal('100'))],
    )


class TestCompleteDraft:
    """The exact completeness predicate."""

    def test_complete_new_draft_is_persisted(self):
        assert is_complete_draft(_complete()) is True
        assert should_persist_on_close(_complete(), is_new=True) is True

    def test_existing_payment_is_never_auto_saved(self):
        assert should_persist_on_close(_complete(), is_new=False) is False

    @pytest.mark.parametrize('field, value', [
        ('supplier_id', None),
        ('number', ''),
        ('number', '   '),
        ('payment_date', None),
        ('payment_amount', Decimal('0')),
    ])
    def test_missing_header_field(self, field, value):
        payment = _complete()
        setattr(payment, field, value)
        assert should_persist_on_close(payment, is_new=True) is False

    def test_needs_a_positive_application(self):
        payment = _complete()
        payment.applications[0].applied_amount = Decimal('0')
        assert is_complete_draft(payment) is False
        payment.applications = []
        assert is_complete_draft(payment) is False

    def test_application_above_amount_due(self):
        payment = _complete()
        payment.applications[0].amount_due = Decimal('99.99')
        assert is_complete_draft(payment) is False

    def test_posted_payment_is_not_a_draft(self):
        posted = PostedPayment(id=1, number='PAY1', supplier_id=1, payment_date=date(2024, 1, 1),
                               currency_code='USD', exchange_rate=Decimal('1'),
                               payment_amount=Decimal('1'), applications=())
        assert should_persist_on_close(posted, is_new=True) is False
