"""Loan model - deferred part of a credit sale."""
import enum
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class LoanStatus(str, enum.Enum):
    """Loan status. Only ever advances unpaid -> part-paid -> paid."""
    UNPAID = 'unpaid'
    PART_PAID = 'part-paid'
    PAID = 'paid'


class Loan(Base):
    """Loan (credit balance owed by a customer)."""

    __tablename__ = 'loan'
    __table_args__ = (
        CheckConstraint('balance >= 0', name='ck_loan_balance_non_negative'),
        CheckConstraint('paid_amount <= total_amount', name='ck_loan_paid_not_above_total'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id'), nullable=True, unique=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True, index=True)
    customer_name = Column(String(200), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=LoanStatus.UNPAID.value)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    sale = relationship('Sale', back_populates='loan')
    customer = relationship('Customer', back_populates='loans')
    payments = relationship('LoanPayment', back_populates='loan', order_by='LoanPayment.id')

    @property
    def is_paid(self):
        return self.status == LoanStatus.PAID.value

    def __repr__(self):
        return f"<Loan(id={self.id}, balance={self.balance}, status='{self.status}')>"
