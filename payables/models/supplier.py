"""Supplier and supplier site models."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payables.database import Base, BigIntId


class Supplier(Base):
    """Supplier (vendor) invoices are received from and payments are made to."""

    __tablename__ = 'ap_supplier'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    number = Column(String(20), nullable=True, unique=True)
    name = Column(String, nullable=False, unique=True)
    tax_id = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    currency_code = Column(String(3), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sites = relationship('SupplierSite', back_populates='supplier', cascade='all, delete-orphan')
    invoices = relationship('Invoice', back_populates='supplier')

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'name': self.name,
            'tax_id': self.tax_id,
            'email': self.email,
            'phone': self.phone,
            'currency_code': self.currency_code,
        }

    def __repr__(self):
        return f"<Supplier(id={self.id}, name='{self.name}')>"


class SupplierSite(Base):
    """A billing/pay-to site of a supplier."""

    __tablename__ = 'ap_supplier_site'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    supplier_id = Column(BigIntId, ForeignKey('ap_supplier.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    address_line1 = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)

    supplier = relationship('Supplier', back_populates='sites')

    def to_dict(self):
        return {
            'id': self.id,
            'supplier_id': self.supplier_id,
            'name': self.name,
            'address_line1': self.address_line1,
            'city': self.city,
            'state': self.state,
        }

    def __repr__(self):
        return f"<SupplierSite(id={self.id}, supplier_id={self.supplier_id}, name='{self.name}')>"
