"""Inventory item model (reference data for invoice lines)."""
from sqlalchemy import Column, String, Numeric, Boolean
from payables.database import Base, BigIntId


class InventoryItem(Base):
    """Inventory item."""

    __tablename__ = 'inventory_item'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True)
    name = Column(String, nullable=False)
    unit_price = Column(Numeric(20, 6), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'unit_price': None if self.unit_price is None else str(self.unit_price),
            'active': self.active,
        }

    def __repr__(self):
        return f"<InventoryItem(id={self.id}, code='{self.code}')>"
