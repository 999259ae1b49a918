"""Booking status state machine and role-gated transition rules.

Everything here is pure: callers resolve the acting role from the shop-staff
relationship, then ask this module whether the role may perform an action and
whether the booking's current status allows it. Persistence re-checks the
status precondition atomically, so a rule that passes here can still lose a
race at the database.
"""

from dataclasses import dataclass
from enum import Enum

from shop_bookings.core.exceptions import NotAuthorized, ReasonRequired, TransitionRejected
from shop_bookings.db.models import BookingStatus, PlatformRole, StaffRole

CUSTOMER_CANCELLATION_REASON = "Cancelled by customer"
REJECTION_PREFIX = "[REJECTED] "


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"
    SUPER_ADMIN = "super_admin"


class BookingAction(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    RESCHEDULE = "reschedule"
    RATE = "rate"


@dataclass(frozen=True)
class Transition:
    sources: frozenset[BookingStatus]
    target: BookingStatus | None


STAFF_ROLES = frozenset({ActorRole.MANAGER, ActorRole.ADMIN, ActorRole.OWNER, ActorRole.SUPER_ADMIN})

TRANSITIONS: dict[BookingAction, Transition] = {
    BookingAction.CONFIRM: Transition(frozenset({BookingStatus.PENDING}), BookingStatus.CONFIRMED),
    BookingAction.REJECT: Transition(frozenset({BookingStatus.PENDING}), BookingStatus.CANCELLED),
    BookingAction.CANCEL: Transition(
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}), BookingStatus.CANCELLED
    ),
    BookingAction.COMPLETE: Transition(frozenset({BookingStatus.CONFIRMED}), BookingStatus.COMPLETED),
    BookingAction.MARK_NO_SHOW: Transition(
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}), BookingStatus.NO_SHOW
    ),
    # Rescheduled bookings go back to pending and need re-confirmation.
    BookingAction.RESCHEDULE: Transition(
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}), BookingStatus.PENDING
    ),
    # Rating never changes the status.
    BookingAction.RATE: Transition(frozenset({BookingStatus.COMPLETED}), None),
}

PERMISSIONS: dict[BookingAction, frozenset[ActorRole]] = {
    BookingAction.CONFIRM: STAFF_ROLES,
    BookingAction.REJECT: STAFF_ROLES,
    BookingAction.CANCEL: STAFF_ROLES | {ActorRole.CUSTOMER},
    BookingAction.COMPLETE: STAFF_ROLES,
    BookingAction.MARK_NO_SHOW: STAFF_ROLES,
    BookingAction.RESCHEDULE: frozenset({ActorRole.CUSTOMER}),
    BookingAction.RATE: frozenset({ActorRole.CUSTOMER}),
}

_STAFF_ROLE_MAP = {
    StaffRole.OWNER.value: ActorRole.OWNER,
    StaffRole.ADMIN.value: ActorRole.ADMIN,
    StaffRole.MANAGER.value: ActorRole.MANAGER,
    StaffRole.BARBER.value: ActorRole.PROVIDER,
}


def resolve_actor_role(
    actor_id: int,
    platform_role: str,
    staff_role: str | None,
    customer_id: int,
) -> ActorRole | None:
    """Map who the caller is relative to one booking onto a single role.

    A shop-staff role takes precedence over being the booking's customer, so
    a barber stays read-only even on a booking they made themselves.
    """
    if platform_role == PlatformRole.SUPER_ADMIN.value:
        return ActorRole.SUPER_ADMIN
    if staff_role is not None:
        return _STAFF_ROLE_MAP.get(staff_role)
    if actor_id == customer_id:
        return ActorRole.CUSTOMER
    return None


def is_allowed(role: ActorRole | None, action: BookingAction) -> bool:
    return role is not None and role in PERMISSIONS[action]


def authorize(role: ActorRole | None, action: BookingAction) -> None:
    if not is_allowed(role, action):
        raise NotAuthorized(f"Role {role.value if role else 'none'} may not {action.value} this booking")


def can_transition(status: BookingStatus | str, action: BookingAction) -> bool:
    return BookingStatus(status) in TRANSITIONS[action].sources


def check_transition(status: BookingStatus | str, action: BookingAction) -> Transition:
    current = BookingStatus(status)
    transition = TRANSITIONS[action]
    if current not in transition.sources:
        raise TransitionRejected(f"Cannot {action.value} a booking that is {current.value}")
    return transition


def normalize_cancellation_reason(role: ActorRole, reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if role == ActorRole.CUSTOMER:
        return cleaned or CUSTOMER_CANCELLATION_REASON
    if not cleaned:
        raise ReasonRequired()
    return cleaned


def rejection_note(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ReasonRequired("A rejection reason is required")
    return f"{REJECTION_PREFIX}{cleaned}"


def available_actions(
    role: ActorRole | None,
    status: BookingStatus | str,
    already_rated: bool = False,
) -> list[BookingAction]:
    actions = [
        action
        for action in BookingAction
        if is_allowed(role, action) and can_transition(status, action)
    ]
    if already_rated and BookingAction.RATE in actions:
        actions.remove(BookingAction.RATE)
    return actions
