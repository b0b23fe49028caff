from typing import Optional

from .base import CamelModel
from .enums import UserRole


class User(CamelModel):
    """Caller identity as asserted by the identity provider. Only `role` drives workflow decisions."""
    id: str
    name: str
    role: UserRole
    email: Optional[str] = None


SYSTEM_USER = User(id="SYSTEM", name="System", role=UserRole.ADMIN)
