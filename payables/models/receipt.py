"""Goods receipt models (read-only input for receipt-matched invoices)."""
from sqlalchemy import Column, String, Date, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from payables.database import Base, BigIntId
from payables.utils.number_format import decimal_to_str, date_to_str


class Receipt(Base):
    """Goods receipt header."""

    __tablename__ = 'receipt'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    number = Column(String(40), nullable=False, unique=True)
    supplier_id = Column(BigIntId, ForeignKey('ap_supplier.id'), nullable=True)
    site_id = Column(BigIntId, ForeignKey('ap_supplier_site.id'), nullable=True)
    receipt_date = Column(Date, nullable=True)
    currency_code = Column(String(3), nullable=True)
    exchange_rate = Column(Numeric(12, 6), nullable=True)

    lines = relationship('ReceiptLine', back_populates='receipt', cascade='all, delete-orphan',
                         order_by='ReceiptLine.id')

    def to_dict(self, with_lines=True):
        data = {
            'id': self.id,
            'number': self.number,
            'supplier_id': self.supplier_id,
            'site_id': self.site_id,
            'receipt_date': date_to_str(self.receipt_date),
            'currency_code': self.currency_code,
            'exchange_rate': decimal_to_str(self.exchange_rate),
        }
        if with_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data

    def __repr__(self):
        return f"<Receipt(id={self.id}, number='{self.number}')>"


class ReceiptLine(Base):
    """Goods receipt line. Amounts may be missing and are derived on import."""

    __tablename__ = 'receipt_line'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    receipt_id = Column(BigIntId, ForeignKey('receipt.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id = Column(BigIntId, ForeignKey('inventory_item.id'), nullable=True)
    description = Column(String, nullable=True)
    quantity_accepted = Column(Numeric(20, 6), nullable=False, default=0)
    unit_price = Column(Numeric(20, 6), nullable=False, default=0)
    line_amount = Column(Numeric(20, 6), nullable=True)
    tax_rate = Column(Numeric(12, 6), nullable=True)
    tax_amount = Column(Numeric(20, 6), nullable=True)

    receipt = relationship('Receipt', back_populates='lines')

    def to_dict(self):
        return {
            'item_id': self.item_id,
            'description': self.description,
            'quantity_accepted': decimal_to_str(self.quantity_accepted),
            'unit_price': decimal_to_str(self.unit_price),
            'line_amount': decimal_to_str(self.line_amount),
            'tax_rate': decimal_to_str(self.tax_rate),
            'tax_amount': decimal_to_str(self.tax_amount),
        }
