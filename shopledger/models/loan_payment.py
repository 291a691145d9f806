"""Loan Payment model - append-only."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class LoanPayment(Base):
    """
    Loan Payment - amount actually applied against a loan.

    Rows are never updated or deleted; each one lowers the parent loan balance.
    """

    __tablename__ = 'loan_payment'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_loan_payment_amount_positive'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    loan_id = Column(BigInteger, ForeignKey('loan.id'), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    received_by = Column(BigInteger, ForeignKey('staff_profile.id'), nullable=True)
    received_by_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    loan = relationship('Loan', back_populates='payments')

    def __repr__(self):
        return f"<LoanPayment(id={self.id}, loan_id={self.loan_id}, amount={self.amount})>"
