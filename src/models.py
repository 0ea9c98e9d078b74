# src/models.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, DateTime

from src.database import Base


class PriceRecord(Base):
    """The durable unit price. One row per deployment, no history."""

    __tablename__ = 'price_record'
    id = Column(Integer, primary_key=True)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='ARS')
    last_updated = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_by = Column(String(100), nullable=False, default='admin')
    environment = Column(String(50), nullable=False, default='development')

    def __repr__(self) -> str:
        return f"<PriceRecord id={self.id} price={self.price} {self.currency}>"
