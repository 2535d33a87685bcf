"""Accounts-payable invoice model."""
from sqlalchemy import Column, String, Date, Integer, Numeric, DateTime, Enum, ForeignKey, Text
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payables.database import Base, BigIntId
from payables.core.types import InvoiceStatus, ApprovalStatus
from payables.utils.number_format import decimal_to_str, date_to_str

AMOUNT = Numeric(20, 6)


class Invoice(Base):
    """Supplier invoice. Subtotal, tax and total are derived from the lines."""

    __tablename__ = 'ap_invoice'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    number = Column(String(40), nullable=True, unique=True)
    supplier_id = Column(BigIntId, ForeignKey('ap_supplier.id'), nullable=False, index=True)
    site_id = Column(BigIntId, ForeignKey('ap_supplier_site.id'), nullable=True)
    source_receipt_id = Column(BigIntId, ForeignKey('receipt.id'), nullable=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    payment_terms = Column(Integer, nullable=True)
    currency_code = Column(String(3), nullable=False, default='USD')
    exchange_rate = Column(Numeric(12, 6), nullable=False, default=1)
    subtotal = Column(AMOUNT, nullable=False, default=0)
    tax_amount = Column(AMOUNT, nullable=False, default=0)
    total_amount = Column(AMOUNT, nullable=False, default=0)
    amount_paid = Column(AMOUNT, nullable=False, default=0)
    status = Column(Enum(InvoiceStatus, name='ap_invoice_status'), nullable=False, default=InvoiceStatus.DRAFT)
    approval_status = Column(
        Enum(ApprovalStatus, name='ap_approval_status'), nullable=False, default=ApprovalStatus.PENDING
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier', back_populates='invoices')
    site = relationship('SupplierSite')
    source_receipt = relationship('Receipt')
    lines = relationship(
        'InvoiceLine', back_populates='invoice', cascade='all, delete-orphan',
        order_by='InvoiceLine.line_number'
    )
    applications = relationship('PaymentApplication', back_populates='invoice')

    @hybrid_property
    def amount_due(self):
        return self.total_amount - self.amount_paid

    def to_dict(self, with_lines=True):
        data = {
            'id': self.id,
            'number': self.number,
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier.name if self.supplier else None,
            'site_id': self.site_id,
            'source_receipt_id': self.source_receipt_id,
            'invoice_date': date_to_str(self.invoice_date),
            'due_date': date_to_str(self.due_date),
            'payment_terms': self.payment_terms,
            'currency_code': self.currency_code,
            'exchange_rate': decimal_to_str(self.exchange_rate),
            'subtotal': decimal_to_str(self.subtotal),
            'tax_amount': decimal_to_str(self.tax_amount),
            'total_amount': decimal_to_str(self.total_amount),
            'amount_paid': decimal_to_str(self.amount_paid),
            'amount_due': decimal_to_str(self.amount_due),
            'status': self.status.value,
            'approval_status': self.approval_status.value,
            'notes': self.notes,
        }
        if with_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.number}', status={self.status.value})>"
