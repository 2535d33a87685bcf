"""Accounts-payable payment model."""
from sqlalchemy import Column, String, Date, Numeric, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payables.database import Base, BigIntId
from payables.core.types import PaymentStatus
from payables.utils.number_format import ZERO, decimal_to_str, date_to_str


class Payment(Base):
    """
    Supplier payment.

    DRAFT payments are provisional and hold invoice reservations; PAID
    payments are final and their applications are frozen.
    """

    __tablename__ = 'ap_payment'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    number = Column(String(40), nullable=True, unique=True)
    supplier_id = Column(BigIntId, ForeignKey('ap_supplier.id'), nullable=False, index=True)
    payment_date = Column(Date, nullable=False)
    currency_code = Column(String(3), nullable=False, default='USD')
    exchange_rate = Column(Numeric(12, 6), nullable=False, default=1)
    payment_amount = Column(Numeric(20, 6), nullable=False, default=0)
    payment_method = Column(String(20), nullable=True)  # CHECK, WIRE, ACH, CASH
    bank_account = Column(String, nullable=True)
    reference_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Enum(PaymentStatus, name='ap_payment_status'), nullable=False, default=PaymentStatus.DRAFT)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    supplier = relationship('Supplier')
    applications = relationship(
        'PaymentApplication', back_populates='payment', cascade='all, delete-orphan',
        order_by='PaymentApplication.id'
    )
    reservations = relationship('DraftReservation', back_populates='payment', cascade='all, delete-orphan')

    @property
    def amount_applied(self):
        return sum((app.applied_amount for app in self.applications), ZERO)

    @property
    def unapplied_amount(self):
        return self.payment_amount - self.amount_applied

    def to_dict(self, with_applications=True):
        data = {
            'id': self.id,
            'number': self.number,
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier.name if self.supplier else None,
            'payment_date': date_to_str(self.payment_date),
            'currency_code': self.currency_code,
            'exchange_rate': decimal_to_str(self.exchange_rate),
            'payment_amount': decimal_to_str(self.payment_amount),
            'amount_applied': decimal_to_str(self.amount_applied),
            'unapplied_amount': decimal_to_str(self.unapplied_amount),
            'payment_method': self.payment_method,
            'bank_account': self.bank_account,
            'reference_number': self.reference_number,
            'notes': self.notes,
            'status': self.status.value,
        }
        if with_applications:
            data['applications'] = [app.to_dict() for app in self.applications]
        return data

    def __repr__(self):
        return f"<Payment(id={self.id}, number='{self.number}', status={self.status.value})>"
