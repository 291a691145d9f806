"""Tenant model - each shop using the platform."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class Tenant(Base):
    """Tenant model - a shop, with the display metadata printed on receipts."""

    __tablename__ = 'tenant'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)  # Display name, feeds the receipt prefix
    address = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    footer_message = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Relationships
    staff = relationship('StaffProfile', back_populates='tenant')

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', name='{self.name}')>"
