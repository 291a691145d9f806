"""Sale model."""
import enum
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class PaymentMethod(str, enum.Enum):
    """Payment method labels. No gateway sits behind either one."""
    CASH = 'cash'
    LOAN = 'loan'


class Sale(Base):
    """Sale (committed checkout). Immutable once created."""

    __tablename__ = 'sale'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'receipt_code', name='uq_sale_tenant_receipt_code'),
        CheckConstraint('balance >= 0', name='ck_sale_balance_non_negative'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    receipt_code = Column(String(32), nullable=False)

    # NULL customer_id means walk-in
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    customer_name = Column(String(200), nullable=False)

    total = Column(Numeric(12, 2), nullable=False)
    paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)

    sold_by = Column(BigInteger, ForeignKey('staff_profile.id'), nullable=True, index=True)
    sold_by_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    # Relationships
    tenant = relationship('Tenant')
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleItem.id')
    loan = relationship('Loan', back_populates='sale', uselist=False)

    @property
    def is_walk_in(self):
        return self.customer_id is None

    def __repr__(self):
        return f"<Sale(id={self.id}, receipt_code='{self.receipt_code}', total={self.total})>"
