"""StaffProfile model - people who sell and receive payments in a shop."""
import enum
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from shopledger.database import Base, BigIntegerPK


class StaffRole(str, enum.Enum):
    """Staff roles within a shop."""
    OWNER = 'owner'
    STAFF = 'staff'


class StaffProfile(Base):
    """Staff profile (id, name, role) used as the seller/receiver identity."""

    __tablename__ = 'staff_profile'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=StaffRole.STAFF.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    tenant = relationship('Tenant', back_populates='staff')

    def __repr__(self):
        return f"<StaffProfile(id={self.id}, name='{self.name}', role='{self.role}')>"

    def is_owner(self):
        """Check if the profile is the shop owner."""
        return self.role == StaffRole.OWNER.value
