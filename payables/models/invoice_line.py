"""Accounts-payable invoice line model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from payables.database import Base, BigIntId
from payables.utils.number_format import decimal_to_str


class InvoiceLine(Base):
    """Invoice line. line_number runs 1..n without gaps."""

    __tablename__ = 'ap_invoice_line'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    invoice_id = Column(BigIntId, ForeignKey('ap_invoice.id', ondelete='CASCADE'), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    item_id = Column(BigIntId, ForeignKey('inventory_item.id'), nullable=True)
    description = Column(String, nullable=True)
    quantity = Column(Numeric(20, 6), nullable=False, default=0)
    unit_price = Column(Numeric(20, 6), nullable=False, default=0)
    line_amount = Column(Numeric(20, 6), nullable=False, default=0)
    tax_rate = Column(Numeric(12, 6), nullable=False, default=0)
    tax_amount = Column(Numeric(20, 6), nullable=False, default=0)

    # Relationships
    invoice = relationship('Invoice', back_populates='lines')
    item = relationship('InventoryItem')

    def to_dict(self):
        return {
            'line_number': self.line_number,
            'item_id': self.item_id,
            'description': self.description,
            'quantity': decimal_to_str(self.quantity),
            'unit_price': decimal_to_str(self.unit_price),
            'line_amount': decimal_to_str(self.line_amount),
            'tax_rate': decimal_to_str(self.tax_rate),
            'tax_amount': decimal_to_str(self.tax_amount),
        }

    def __repr__(self):
        return f"<InvoiceLine(invoice_id={self.invoice_id}, line_number={self.line_number})>"
