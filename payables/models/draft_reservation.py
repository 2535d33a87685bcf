"""Draft reservation model: which draft payment currently holds an invoice."""
from sqlalchemy import Column, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payables.database import Base, BigIntId


class DraftReservation(Base):
    """
    At most one row per invoice (UNIQUE invoice_id).

    A row exists while the invoice is applied on a DRAFT payment; the
    uniqueness constraint is what makes reserve-or-reject authoritative.
    """

    __tablename__ = 'ap_draft_reservation'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    invoice_id = Column(BigIntId, ForeignKey('ap_invoice.id'), nullable=False, unique=True)
    payment_id = Column(BigIntId, ForeignKey('ap_payment.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    invoice = relationship('Invoice')
    payment = relationship('Payment', back_populates='reservations')

    def __repr__(self):
        return f"<DraftReservation(invoice_id={self.invoice_id}, payment_id={self.payment_id})>"
