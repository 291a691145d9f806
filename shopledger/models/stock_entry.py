"""Stock Entry model - one restock event."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class StockEntry(Base):
    """Stock Entry (quantity received for a product)."""

    __tablename__ = 'stock_entry'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_stock_entry_quantity_positive'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    buying_price = Column(Numeric(12, 2), nullable=True)
    supplier = Column(String(200), nullable=True)
    added_by = Column(BigInteger, ForeignKey('staff_profile.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    product = relationship('Product', back_populates='stock_entries')

    def __repr__(self):
        return f"<StockEntry(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
