"""Customer model."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class Customer(Base):
    """Customer (debtor for credit sales)."""

    __tablename__ = 'customer'
    __table_args__ = (
        CheckConstraint('total_debt >= 0', name='ck_customer_total_debt_non_negative'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    # Denormalized sum of open loan balances; written only by debt_service
    total_debt = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    tenant = relationship('Tenant')
    sales = relationship('Sale', back_populates='customer')
    loans = relationship('Loan', back_populates='customer')

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', total_debt={self.total_debt})>"
