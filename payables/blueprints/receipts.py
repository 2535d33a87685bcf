"""Receipts blueprint (read-only JSON API)."""
from flask import Blueprint, request, jsonify

from payables.database import get_session
from payables.services import receipt_service

receipts_bp = Blueprint('receipts', __name__, url_prefix='/api/receipts')


@receipts_bp.route('', methods=['GET'])
def list_receipts():
    receipts = receipt_service.list_receipts(get_session(), supplier_id=request.args.get('supplier_id'))
    return jsonify([receipt.to_dict(with_lines=False) for receipt in receipts])


@receipts_bp.route('/<int:receipt_id>', methods=['GET'])
def get_receipt(receipt_id):
    return jsonify(receipt_service.get_receipt(get_session(), receipt_id).to_dict())
