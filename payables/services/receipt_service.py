"""Goods receipt lookups (receipts are read-only here)."""
from payables.exceptions import NotFoundError
from payables.models import Receipt
from payables.utils.number_format import parse_int


def list_receipts(session, supplier_id=None):
    query = session.query(Receipt)
    if supplier_id:
        query = query.filter(Receipt.supplier_id == parse_int(supplier_id, 'supplier_id'))
    return query.order_by(Receipt.receipt_date.desc(), Receipt.id.desc()).all()


def get_receipt(session, receipt_id: int) -> Receipt:
    receipt = session.get(Receipt, receipt_id)
    if receipt is None:
        raise NotFoundError(f'Receipt {receipt_id} not found')
    return receipt
