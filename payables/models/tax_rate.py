"""Tax rate model."""
from sqlalchemy import Column, String, Numeric
from payables.database import Base, BigIntId


class TaxRate(Base):
    """Tax rate, expressed as a percentage (10 means 10%)."""

    __tablename__ = 'tax_rate'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String, nullable=False)
    rate = Column(Numeric(12, 6), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'code': self.code, 'name': self.name, 'rate': str(self.rate)}

    def __repr__(self):
        return f"<TaxRate(code='{self.code}', rate={self.rate})>"
