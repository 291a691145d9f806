"""Product model."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class Product(Base):
    """Product model. `quantity` is the on-hand stock."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_product_quantity_non_negative'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    buying_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    low_stock_level = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Relationships
    tenant = relationship('Tenant')
    stock_entries = relationship('StockEntry', back_populates='product')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', quantity={self.quantity})>"

    @property
    def is_low_stock(self):
        """True when on-hand quantity is at or below the restock threshold."""
        return (self.quantity or 0) <= (self.low_stock_level or 0)
