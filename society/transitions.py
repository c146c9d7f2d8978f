"""
Status state machines for bookings, lost & found items and maintenance requests.

Each entity declares its transitions as a table: an action (``set_status``,
``cancel``) names the capability it needs and, for every source status, the
statuses it may move to. :meth:`StateMachine.apply` is the single place where
a record's ``status`` field is changed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, Mapping

from .errors import Conflict
from .policy import Capability, check

logger = logging.getLogger(__name__)

ANY = "*"

ACTION_VERBS = {
    "set_status": "change the status of",
    "cancel": "cancel",
}


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class LostFoundStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class MaintenanceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Transition:
    capability: Capability
    # source status (or ANY) -> reachable target statuses
    edges: Mapping[str, FrozenSet[str]]

    def allows(self, source: str, target: str) -> bool:
        if target in self.edges.get(source, frozenset()):
            return True
        return target in self.edges.get(ANY, frozenset())


@dataclass
class StateMachine:
    entity: str
    initial: str
    actions: Dict[str, Transition]
    on_enter: Dict[str, Callable] = field(default_factory=dict)

    def apply(self, action: str, record, target, user) -> str:
        """
        Move ``record`` to ``target`` through ``action`` on behalf of ``user``.

        Raises
        ------
        Forbidden
            If ``user`` lacks the capability the action requires.
        Conflict
            If the action has no edge from the record's current status to
            ``target``. Unknown status strings never get this far; the
            request schemas reject them.
        """
        transition = self.actions[action]
        target = getattr(target, "value", target)

        check(transition.capability, user, record.user_id).enforce(
            f"Not authorized to {ACTION_VERBS.get(action, action)} this {self.entity}"
        )

        previous = record.status
        if not transition.allows(previous, target):
            raise Conflict(f"Cannot change a {previous} {self.entity} to {target}")

        record.status = target
        hook = self.on_enter.get(target)
        if hook is not None:
            hook(record)

        logger.info(
            "%s %s: %s -> %s by user %s (%s)",
            self.entity, record.id, previous, target, user.id, action,
        )
        return previous


def _edges(table: Mapping) -> Dict[str, FrozenSet[str]]:
    return {
        getattr(source, "value", source): frozenset(t.value for t in targets)
        for source, targets in table.items()
    }


def _stamp_resolved(record) -> None:
    record.resolved_at = datetime.utcnow()


BOOKING = StateMachine(
    entity="booking",
    initial=BookingStatus.PENDING.value,
    actions={
        # admins may force any status through the status endpoint
        "set_status": Transition(Capability.ADMIN, _edges({ANY: list(BookingStatus)})),
        "cancel": Transition(
            Capability.SELF_OR_ADMIN,
            _edges({
                BookingStatus.PENDING: [BookingStatus.CANCELLED],
                BookingStatus.APPROVED: [BookingStatus.CANCELLED],
            }),
        ),
    },
)

LOST_FOUND = StateMachine(
    entity="item",
    initial=LostFoundStatus.OPEN.value,
    actions={
        "set_status": Transition(
            Capability.SELF_OR_ADMIN,
            _edges({LostFoundStatus.OPEN: [LostFoundStatus.RESOLVED]}),
        ),
    },
)

MAINTENANCE = StateMachine(
    entity="request",
    initial=MaintenanceStatus.PENDING.value,
    actions={
        # admins may resolve straight from pending, and may re-set the current
        # status to add comments or an assignee
        "set_status": Transition(
            Capability.ADMIN,
            _edges({
                MaintenanceStatus.PENDING: [
                    MaintenanceStatus.PENDING,
                    MaintenanceStatus.IN_PROGRESS,
                    MaintenanceStatus.RESOLVED,
                ],
                MaintenanceStatus.IN_PROGRESS: [
                    MaintenanceStatus.IN_PROGRESS,
                    MaintenanceStatus.RESOLVED,
                ],
            }),
        ),
        "cancel": Transition(
            Capability.SELF_OR_ADMIN,
            _edges({
                MaintenanceStatus.PENDING: [MaintenanceStatus.CANCELLED],
                MaintenanceStatus.IN_PROGRESS: [MaintenanceStatus.CANCELLED],
            }),
        ),
    },
    on_enter={MaintenanceStatus.RESOLVED.value: _stamp_resolved},
)
