"""Payments blueprint: draft payments, conflicts and finalization (JSON API)."""
from flask import Blueprint, request, jsonify, current_app

from payables.blueprints import json_body
from payables.blueprints.metrics import payments_finalized_total
from payables.database import get_session
from payables.exceptions import ValidationError
from payables.models import PaymentStatus
from payables.services import payment_service, reservation_service
from payables.utils.number_format import parse_int

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


def _count_if_finalized(payment):
    if payment.status is PaymentStatus.PAID:
        payments_finalized_total.inc()


@payments_bp.route('', methods=['GET'])
def list_payments():
    """List payments; filters: status, supplier_id, date_from, date_to."""
    payments = payment_service.list_payments(
        get_session(),
        status=request.args.get('status'),
        supplier_id=request.args.get('supplier_id'),
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )
    return jsonify([payment.to_dict(with_applications=False) for payment in payments])


@payments_bp.route('/next-number', methods=['GET'])
def next_number():
    return jsonify({'number': payment_service.next_payment_number(get_session())})


@payments_bp.route('/eligible-invoices', methods=['GET'])
def eligible_invoices():
    """Eligible invoices of a supplier, minus the ones other drafts hold."""
    invoices = payment_service.eligible_invoices(
        get_session(),
        request.args.get('supplier_id'),
        exclude_payment_id=request.args.get('exclude_payment_id'),
    )
    return jsonify([invoice.to_dict() for invoice in invoices])


@payments_bp.route('/conflicts', methods=['POST'])
def check_conflicts():
    """
    Advisory draft-conflict check.

    Body: {"invoice_ids": [...], "exclude_payment_id": id|null}
    """
    data = json_body()
    raw_ids = data.get('invoice_ids') or []
    if not isinstance(raw_ids, list):
        raise ValidationError('invoice_ids must be a list', field='invoice_ids')
    conflicts = reservation_service.check_draft_conflicts(
        get_session(),
        [parse_int(value, 'invoice_ids') for value in raw_ids],
        exclude_payment_id=parse_int(data.get('exclude_payment_id'), 'exclude_payment_id'),
    )
    return jsonify([conflict.to_dict() for conflict in conflicts])


@payments_bp.route('', methods=['POST'])
def create_payment():
    payment = payment_service.create_payment(json_body(), get_session())
    _count_if_finalized(payment)
    return jsonify(payment.to_dict()), 201


@payments_bp.route('/<int:payment_id>', methods=['GET'])
def get_payment(payment_id):
    return jsonify(payment_service.get_payment(get_session(), payment_id).to_dict())


@payments_bp.route('/<int:payment_id>', methods=['PUT', 'PATCH'])
def update_payment(payment_id):
    payment = payment_service.update_payment(payment_id, json_body(), get_session())
    _count_if_finalized(payment)
    return jsonify(payment.to_dict())


@payments_bp.route('/<int:payment_id>', methods=['DELETE'])
def delete_payment(payment_id):
    payment_service.delete_payment(payment_id, get_session())
    return jsonify({'status': 'ok', 'deleted': payment_id})


@payments_bp.route('/<int:payment_id>/finalize', methods=['POST'])
def finalize_payment(payment_id):
    payment = payment_service.finalize_payment(payment_id, get_session())
    _count_if_finalized(payment)
    current_app.logger.info(f"[PAYMENTS] {payment.number} finalized via API")
    return jsonify(payment.to_dict())


@payments_bp.route('/<int:payment_id>/applications', methods=['GET'])
def payment_applications(payment_id):
    return jsonify(payment_service.payment_applications(payment_id, get_session()))
