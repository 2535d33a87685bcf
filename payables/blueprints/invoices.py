"""Invoices blueprint: invoice CRUD, submission and status (JSON API)."""
from flask import Blueprint, request, jsonify

from payables.blueprints import json_body
from payables.database import get_session
from payables.services import invoice_service

invoices_bp = Blueprint('invoices', __name__, url_prefix='/api/invoices')


@invoices_bp.route('', methods=['GET'])
def list_invoices():
    """List invoices; filters: status, supplier_id, due_from, due_to."""
    invoices = invoice_service.list_invoices(
        get_session(),
        status=request.args.get('status'),
        supplier_id=request.args.get('supplier_id'),
        due_from=request.args.get('due_from'),
        due_to=request.args.get('due_to'),
    )
    return jsonify([invoice.to_dict(with_lines=False) for invoice in invoices])


@invoices_bp.route('', methods=['POST'])
def create_invoice():
    invoice = invoice_service.create_invoice(json_body(), get_session())
    return jsonify(invoice.to_dict()), 201


@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
def get_invoice(invoice_id):
    return jsonify(invoice_service.get_invoice(get_session(), invoice_id).to_dict())


@invoices_bp.route('/<int:invoice_id>', methods=['PUT', 'PATCH'])
def update_invoice(invoice_id):
    invoice = invoice_service.update_invoice(invoice_id, json_body(), get_session())
    return jsonify(invoice.to_dict())


@invoices_bp.route('/<int:invoice_id>/submit', methods=['POST'])
def submit_invoice(invoice_id):
    invoice = invoice_service.submit_invoice(invoice_id, get_session())
    return jsonify(invoice.to_dict())


@invoices_bp.route('/<int:invoice_id>/status', methods=['PATCH'])
def set_invoice_status(invoice_id):
    """Set approval_status, or the terminal status CANCELLED/VOID."""
    invoice = invoice_service.set_invoice_status(invoice_id, json_body(), get_session())
    return jsonify(invoice.to_dict(with_lines=False))


@invoices_bp.route('/<int:invoice_id>/payments', methods=['GET'])
def invoice_payments(invoice_id):
    return jsonify(invoice_service.invoice_payments(invoice_id, get_session()))
