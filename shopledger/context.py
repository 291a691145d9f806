"""Explicit shop/staff context passed into every service call."""
from dataclasses import dataclass
from typing import Optional

from shopledger.models import StaffRole


@dataclass(frozen=True)
class ShopContext:
    """
    Who is acting, and for which shop.

    Built once per request by the middleware (or by the CLI/tests) and handed
    to the services; services never read session or request globals.
    """
    tenant_id: int
    staff_id: Optional[int] = None
    staff_name: Optional[str] = None
    role: str = StaffRole.STAFF.value

    @property
    def is_owner(self) -> bool:
        return self.role == StaffRole.OWNER.value

    @classmethod
    def for_staff(cls, staff) -> 'ShopContext':
        """Build a context from a StaffProfile row."""
        return cls(
            tenant_id=staff.tenant_id,
            staff_id=staff.id,
            staff_name=staff.name,
            role=staff.role,
        )
