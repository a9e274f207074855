"""Per-request caller context.

Authentication is an external collaborator; it hands us a user id and a role.
The context travels explicitly with each request; nothing about the caller is
kept in process-wide state.
"""

from dataclasses import dataclass
from enum import Enum


class ActorRole(Enum):
    CUSTOMER = "Customer"
    STAFF = "Staff"
    MANAGER = "Manager"
    ADMIN = "Admin"
    SYSTEM = "System"


STAFF_ROLES = frozenset({ActorRole.STAFF, ActorRole.MANAGER, ActorRole.ADMIN, ActorRole.SYSTEM})


def is_staff(role) -> bool:
    """True for staff, managers, admins and internal system actors."""
    try:
        return ActorRole(role) in STAFF_ROLES
    except ValueError:
        return False


@dataclass(frozen=True)
class RequestContext:
    user_id: str | None
    role: ActorRole = ActorRole.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
