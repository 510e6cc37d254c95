from dataclasses import dataclass

from ..models import UserRole
from .status import is_admin


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved from the bearer token."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
