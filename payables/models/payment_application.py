"""Payment application model (payment x invoice)."""
from sqlalchemy import Column, Date, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payables.database import Base, BigIntId
from payables.utils.number_format import decimal_to_str, date_to_str


class PaymentApplication(Base):
    """The part of a payment applied to one invoice."""

    __tablename__ = 'ap_payment_application'
    __table_args__ = (
        UniqueConstraint('payment_id', 'invoice_id', name='uq_ap_payment_application_invoice'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    payment_id = Column(BigIntId, ForeignKey('ap_payment.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_id = Column(BigIntId, ForeignKey('ap_invoice.id'), nullable=False, index=True)
    applied_amount = Column(Numeric(20, 6), nullable=False)
    application_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    payment = relationship('Payment', back_populates='applications')
    invoice = relationship('Invoice', back_populates='applications')

    def to_dict(self):
        return {
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice.number if self.invoice else None,
            'applied_amount': decimal_to_str(self.applied_amount),
            'amount_due': decimal_to_str(self.invoice.amount_due) if self.invoice else None,
            'application_date': date_to_str(self.application_date),
        }

    def __repr__(self):
        return f"<PaymentApplication(payment_id={self.payment_id}, invoice_id={self.invoice_id})>"
