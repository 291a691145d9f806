"""Receipt Sequence model - per shop, per day receipt counter."""
from sqlalchemy import Column, BigInteger, Integer, Date, ForeignKey
from shopledger.database import Base


class ReceiptSequence(Base):
    """
    Same-day receipt counter.

    Incremented with a single UPDATE inside the checkout transaction so two
    concurrent checkouts can never be handed the same number.
    """

    __tablename__ = 'receipt_sequence'

    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), primary_key=True)
    day = Column(Date, primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ReceiptSequence(tenant_id={self.tenant_id}, day={self.day}, last_number={self.last_number})>"
