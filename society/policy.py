"""
Authorization predicates.

Every mutating route asks one of these predicates before touching a record.
They are pure: they never read the database and never raise on their own.
Call :meth:`Decision.enforce` to turn a denial into a ``403``.
"""
from dataclasses import dataclass
from enum import Enum

from .errors import Forbidden

ADMIN_ROLE = "admin"
RESIDENT_ROLE = "resident"


class Capability(str, Enum):
    SELF = "self"
    ADMIN = "admin"
    SELF_OR_ADMIN = "self_or_admin"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self, message: str | None = None) -> None:
        if not self.allowed:
            raise Forbidden(message or self.reason)


def is_self(requester_id: int, owner_id: int | None) -> Decision:
    if owner_id is not None and requester_id == owner_id:
        return Decision(True, "requester owns the resource")
    return Decision(False, "Not the owner of this resource")


def is_admin(role: str | None) -> Decision:
    if role == ADMIN_ROLE:
        return Decision(True, "requester is an administrator")
    return Decision(False, "Administrator role required")


def is_self_or_admin(requester_id: int, role: str | None, owner_id: int | None) -> Decision:
    if is_self(requester_id, owner_id):
        return Decision(True, "requester owns the resource")
    if is_admin(role):
        return Decision(True, "requester is an administrator")
    return Decision(False, "Only the owner or an administrator may do this")


def check(capability: Capability, user, owner_id: int | None = None) -> Decision:
    """Evaluate ``capability`` for ``user`` against a resource owned by ``owner_id``."""
    if capability is Capability.SELF:
        return is_self(user.id, owner_id)
    if capability is Capability.ADMIN:
        return is_admin(user.role)
    return is_self_or_admin(user.id, user.role, owner_id)
