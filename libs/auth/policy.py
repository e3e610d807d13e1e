"""Role-based access policy.

Role names are an open vocabulary stored in the ``roles`` table; the three
names below are the ones the policy knows about. Anything else parses to
``None`` and carries no staff or customer capability.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from libs.common.errors import ForbiddenError


class Role(str, enum.Enum):
    ADMINISTRATOR = "Administrator"
    MANAGER = "Manager"
    CLIENT = "Client"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["Role"]:
        if not name:
            return None
        try:
            return cls(name.strip())
        except ValueError:
            return None


DEFAULT_ROLE = Role.CLIENT
STAFF_ROLES = frozenset({Role.ADMINISTRATOR, Role.MANAGER})


@dataclass(frozen=True)
class AccessPolicy:
    """Capabilities of one authenticated caller, evaluated once per request."""

    role: Optional[Role]
    login: str

    @classmethod
    def from_claims(cls, role_name: Optional[str], login: str) -> "AccessPolicy":
        return cls(role=Role.parse(role_name), login=login)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def can_view_orders_of(self, owner_login: str) -> bool:
        return self.is_staff or self.login == owner_login

    def can_mutate_catalog(self) -> bool:
        return self.is_staff

    def can_mutate_order_lifecycle(self) -> bool:
        return self.is_staff

    def can_place_order(self) -> bool:
        # Staff accounts must not buy as customers.
        return self.role is Role.CLIENT


def ensure(allowed: bool, message: Optional[str] = None) -> None:
    """Raise ``ForbiddenError`` unless ``allowed``."""
    if not allowed:
        raise ForbiddenError(message)
