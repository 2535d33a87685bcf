"""
Integration tests for draft payments, reservations and finalization.
"""
from datetime import date
from decimal import Decimal

import pytest

from payables.exceptions import ConflictError
from payables.models import DraftReservation, Invoice, InvoiceStatus, Payment, PaymentStatus
from payables.services import reservation_service


def _draft(client, supplier, *invoice_ids, **fields):
    payload = {
        'supplier_id': supplier.id,
        'payment_date': '2024-03-15',
        'applications': [{'invoice_id': invoice_id} for invoice_id in invoice_ids],
    }
    payload.update(fields)
    return client.post('/api/payments', json=payload)


class TestCreatePayment:
    """POST /api/payments"""

    def test_draft_applies_full_amount_due(self, client, supplier, make_invoice):
        invoice = make_invoice()

        response = _draft(client, supplier, invoice.id)

        data = response.get_json()
        assert response.status_code == 201
        assert data['status'] == 'DRAFT'
        assert data['number'] == f"PAY{data['id']:08d}"
        assert Decimal(data['payment_amount']) == Decimal('1100')
        assert Decimal(data['applications'][0]['applied_amount']) == Decimal('1100')
        assert data['applications'][0]['application_date'] == '2024-03-15'

    def test_partial_application(self, client, supplier, make_invoice):
        """600 applied to 1100 due, payment amount 600: nothing unapplied."""
        invoice = make_invoice()

        response = _draft(client, supplier, applications=[
            {'invoice_id': invoice.id, 'applied_amount': '600'}
        ], payment_amount='600')

        data = response.get_json()
        assert Decimal(data['payment_amount']) == Decimal('600')
        assert Decimal(data['unapplied_amount']) == Decimal('0')

    def test_payment_amount_defaults_to_sum_applied(self, client, session, supplier, make_invoice):
        """Without payment_amount the payment is what it applies, through finalization."""
        first, second = make_invoice(), make_invoice()

        created = _draft(client, supplier, applications=[
            {'invoice_id': first.id, 'applied_amount': '600'},
            {'invoice_id': second.id, 'applied_amount': '250'},
        ]).get_json()

        assert Decimal(created['payment_amount']) == Decimal('850')
        assert Decimal(created['unapplied_amount']) == Decimal('0')

        response = client.post(f"/api/payments/{created['id']}/finalize")

        assert response.status_code == 200
        assert response.get_json()['status'] == 'PAID'
        assert session.get(Payment, created['id']).payment_amount == Decimal('850')

    def test_draft_reserves_its_invoices(self, client, session, supplier, make_invoice):
        first, second = make_invoice(), make_invoice()

        payment_id = _draft(client, supplier, first.id, second.id).get_json()['id']

        held = {r.invoice_id for r in session.query(DraftReservation).filter_by(payment_id=payment_id)}
        assert held == {first.id, second.id}

    def test_over_application_is_rejected(self, client, supplier, make_invoice):
        invoice = make_invoice()
        response = _draft(client, supplier, applications=[
            {'invoice_id': invoice.id, 'applied_amount': '1100.01'}
        ])
        assert response.status_code == 400
        assert response.get_json()['field'] == 'applied_amount'

    def test_invoice_of_another_supplier_is_rejected(self, client, supplier, other_supplier, make_invoice):
        invoice = make_invoice(supplier_id=other_supplier.id)
        response = _draft(client, supplier, invoice.id)
        assert response.status_code == 400

    def test_unapproved_invoice_is_rejected(self, client, supplier, make_invoice):
        invoice = make_invoice(approved=False)
        response = _draft(client, supplier, invoice.id)
        assert response.status_code == 400
        assert 'not approved' in response.get_json()['message']

    def test_same_invoice_twice_is_rejected(self, client, supplier, make_invoice):
        invoice = make_invoice()
        response = _draft(client, supplier, invoice.id, invoice.id)
        assert response.status_code == 400

    def test_unknown_payment_method(self, client, supplier, make_invoice):
        invoice = make_invoice()
        response = _draft(client, supplier, invoice.id, payment_method='BARTER')
        assert response.status_code == 400
        assert response.get_json()['field'] == 'payment_method'

    def test_payment_date_defaults_to_today(self, client, supplier, make_invoice):
        invoice = make_invoice()
        response = client.post('/api/payments', json={
            'supplier_id': supplier.id, 'applications': [{'invoice_id': invoice.id}],
        })
        assert response.get_json()['payment_date'] == date.today().isoformat()


class TestDraftExclusivity:
    """One draft payment per invoice."""

    def test_second_draft_on_same_invoice_conflicts(self, client, supplier, make_invoice):
        invoice = make_invoice()
        first = _draft(client, supplier, invoice.id).get_json()

        response = _draft(client, supplier, invoice.id)

        data = response.get_json()
        assert response.status_code == 409
        assert data['payment_number'] == first['number']
        assert data['invoice_number'] == invoice.number
        assert first['number'] in data['message']

    def test_conflict_leaves_no_second_payment(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        _draft(client, supplier, invoice.id)
        _draft(client, supplier, invoice.id)

        assert session.query(Payment).count() == 1

    def test_resaving_same_draft_is_idempotent(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, invoice.id).get_json()

        response = client.put(f"/api/payments/{created['id']}", json={
            'applications': [{'invoice_id': invoice.id}], 'notes': 'resaved',
        })

        assert response.status_code == 200
        assert response.get_json()['notes'] == 'resaved'
        assert session.query(DraftReservation).filter_by(invoice_id=invoice.id).count() == 1

    def test_removing_application_releases_reservation(self, client, session, supplier, make_invoice):
        first, second = make_invoice(), make_invoice()
        created = _draft(client, supplier, first.id, second.id).get_json()

        client.put(f"/api/payments/{created['id']}", json={'applications': [{'invoice_id': second.id}]})

        assert _draft(client, supplier, first.id).status_code == 201

    def test_deleting_draft_releases_reservation(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, invoice.id).get_json()

        response = client.delete(f"/api/payments/{created['id']}")

        assert response.get_json() == {'status': 'ok', 'deleted': created['id']}
        assert session.query(DraftReservation).count() == 0
        assert _draft(client, supplier, invoice.id).status_code == 201

    def test_conflicts_endpoint(self, client, supplier, make_invoice):
        held, free = make_invoice(), make_invoice()
        owner = _draft(client, supplier, held.id).get_json()

        conflicts = client.post('/api/payments/conflicts', json={
            'invoice_ids': [held.id, free.id],
        }).get_json()

        assert conflicts == [{
            'invoice_id': held.id,
            'invoice_number': held.number,
            'payment_id': owner['id'],
            'payment_number': owner['number'],
        }]

    def test_conflicts_endpoint_excludes_own_payment(self, client, supplier, make_invoice):
        invoice = make_invoice()
        owner = _draft(client, supplier, invoice.id).get_json()

        conflicts = client.post('/api/payments/conflicts', json={
            'invoice_ids': [invoice.id], 'exclude_payment_id': owner['id'],
        }).get_json()

        assert conflicts == []

    def test_eligible_invoices_hide_held_ones(self, client, supplier, make_invoice):
        held, free = make_invoice(), make_invoice()
        make_invoice(approved=False)
        owner = _draft(client, supplier, held.id).get_json()

        listed = client.get(f'/api/payments/eligible-invoices?supplier_id={supplier.id}').get_json()
        assert [invoice['id'] for invoice in listed] == [free.id]

        own_view = client.get(
            f"/api/payments/eligible-invoices?supplier_id={supplier.id}&exclude_payment_id={owner['id']}"
        ).get_json()
        assert [invoice['id'] for invoice in own_view] == [held.id, free.id]

    def test_eligible_invoices_need_supplier(self, client, session):
        assert client.get('/api/payments/eligible-invoices').status_code == 400


class TestFinalizePayment:
    """POST /api/payments/<id>/finalize"""

    def test_partial_payment_leaves_invoice_open(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, applications=[
            {'invoice_id': invoice.id, 'applied_amount': '600'}
        ], payment_amount='600').get_json()

        response = client.post(f"/api/payments/{created['id']}/finalize")

        assert response.status_code == 200
        assert response.get_json()['status'] == 'PAID'
        row = session.get(Invoice, invoice.id)
        assert row.amount_due == Decimal('500')
        assert row.status is InvoiceStatus.OPEN

    def test_full_payment_marks_invoice_paid(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, invoice.id).get_json()

        client.post(f"/api/payments/{created['id']}/finalize")

        row = session.get(Invoice, invoice.id)
        assert row.status is InvoiceStatus.PAID
        assert row.amount_due == Decimal('0')

    def test_finalize_releases_reservations(self, client, session, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, applications=[
            {'invoice_id': invoice.id, 'applied_amount': '100'}
        ]).get_json()

        client.post(f"/api/payments/{created['id']}/finalize")

        assert session.query(DraftReservation).count() == 0
        assert _draft(client, supplier, invoice.id).status_code == 201
        payment = session.get(Payment, created['id'])
        assert payment.finalized_at is not None
        assert payment.payment_amount == Decimal('100')

    def test_applied_above_current_due_is_rejected(self, client, session, supplier, make_invoice):
        """Another payment settled part of the invoice after this draft was saved."""
        invoice = make_invoice()
        stale = _draft(client, supplier, invoice.id).get_json()
        session.get(Invoice, invoice.id).amount_paid = Decimal('400')
        session.commit()

        response = client.post(f"/api/payments/{stale['id']}/finalize")

        assert response.status_code == 400
        assert session.get(Payment, stale['id']).status is PaymentStatus.DRAFT
        assert session.get(Invoice, invoice.id).amount_paid == Decimal('400')

    def test_create_and_finalize_in_one_call(self, client, session, supplier, make_invoice):
        invoice = make_invoice()

        response = _draft(client, supplier, invoice.id, status='PAID')

        assert response.status_code == 201
        assert response.get_json()['status'] == 'PAID'
        assert session.get(Invoice, invoice.id).status is InvoiceStatus.PAID

    def test_finalize_twice_is_rejected(self, client, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, invoice.id).get_json()
        client.post(f"/api/payments/{created['id']}/finalize")

        assert client.post(f"/api/payments/{created['id']}/finalize").status_code == 400

    def test_paid_payment_is_read_only(self, client, supplier, make_invoice):
        invoice = make_invoice()
        created = _draft(client, supplier, invoice.id, status='PAID').get_json()

        update = client.put(f"/api/payments/{created['id']}", json={'reference_number': 'typo fix'})
        delete = client.delete(f"/api/payments/{created['id']}")

        assert update.status_code == 400
        assert delete.status_code == 400
        applications = client.get(f"/api/payments/{created['id']}/applications").get_json()
        assert len(applications) == 1


class TestPaymentQueries:
    """Listing, numbering and metrics."""

    def test_next_number_is_a_preview(self, client, supplier, make_invoice):
        assert client.get('/api/payments/next-number').get_json() == {'number': 'PAY00000001'}

        _draft(client, supplier, make_invoice().id)

        assert client.get('/api/payments/next-number').get_json() == {'number': 'PAY00000002'}

    def test_list_filters(self, client, supplier, make_invoice):
        _draft(client, supplier, make_invoice().id)
        _draft(client, supplier, make_invoice().id, status='PAID', payment_date='2024-04-01')

        assert len(client.get('/api/payments').get_json()) == 2
        assert len(client.get('/api/payments?status=PAID').get_json()) == 1
        assert len(client.get('/api/payments?date_from=2024-04-01').get_json()) == 1

    def test_missing_payment_is_404(self, client, session):
        assert client.get('/api/payments/77').status_code == 404

    def test_metrics_endpoint(self, client, supplier, make_invoice):
        _draft(client, supplier, make_invoice().id, status='PAID')

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'payables_payments_finalized_total' in response.data


class TestReservationService:
    """reserve_or_reject against the session directly."""

    def _payment(self, session, supplier, number):
        payment = Payment(number=number, supplier_id=supplier.id, payment_date=date(2024, 3, 15))
        session.add(payment)
        session.flush()
        return payment

    def test_reserve_is_idempotent(self, session, supplier, make_invoice):
        invoice = make_invoice()
        payment = self._payment(session, supplier, 'PAY-A')

        reservation_service.reserve_or_reject(session, [invoice.id], payment.id)
        reservation_service.reserve_or_reject(session, [invoice.id], payment.id)

        assert session.query(DraftReservation).count() == 1

    def test_other_holder_is_rejected(self, session, supplier, make_invoice):
        invoice = make_invoice()
        holder = self._payment(session, supplier, 'PAY-A')
        reservation_service.reserve_or_reject(session, [invoice.id], holder.id)
        session.commit()
        challenger = self._payment(session, supplier, 'PAY-B')

        with pytest.raises(ConflictError) as exc:
            reservation_service.reserve_or_reject(session, [invoice.id], challenger.id)

        assert exc.value.payment_number == 'PAY-A'
        assert exc.value.invoice_id == invoice.id

    def test_release_selected_invoices(self, session, supplier, make_invoice):
        first, second = make_invoice(), make_invoice()
        payment = self._payment(session, supplier, 'PAY-A')
        reservation_service.reserve_or_reject(session, [first.id, second.id], payment.id)

        released = reservation_service.release_reservations(session, payment.id, [first.id])

        assert released == 1
        assert [r.invoice_id for r in session.query(DraftReservation)] == [second.id]
