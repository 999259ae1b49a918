import pytest

from shop_bookings.core.exceptions import NotAuthorized, ReasonRequired, TransitionRejected
from shop_bookings.db.models import BookingStatus
from shop_bookings.services.booking_state_machine import (
    CUSTOMER_CANCELLATION_REASON,
    ActorRole,
    BookingAction,
    authorize,
    available_actions,
    check_transition,
    normalize_cancellation_reason,
    rejection_note,
    resolve_actor_role,
)

MANAGING_ROLES = [ActorRole.MANAGER, ActorRole.ADMIN, ActorRole.OWNER, ActorRole.SUPER_ADMIN]


@pytest.mark.parametrize("status", list(BookingStatus))
def test_confirm_is_allowed_only_from_pending(status):
    if status == BookingStatus.PENDING:
        assert check_transition(status, BookingAction.CONFIRM).target == BookingStatus.CONFIRMED
    else:
        with pytest.raises(TransitionRejected):
            check_transition(status, BookingAction.CONFIRM)


@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW])
def test_terminal_statuses_reject_every_status_changing_action(status):
    for action in [
        BookingAction.CONFIRM,
        BookingAction.REJECT,
        BookingAction.CANCEL,
        BookingAction.COMPLETE,
        BookingAction.MARK_NO_SHOW,
        BookingAction.RESCHEDULE,
    ]:
        with pytest.raises(TransitionRejected):
            check_transition(status, action)


def test_cancel_allowed_from_pending_and_confirmed():
    assert check_transition("pending", BookingAction.CANCEL).target == BookingStatus.CANCELLED
    assert check_transition("confirmed", BookingAction.CANCEL).target == BookingStatus.CANCELLED


def test_complete_requires_confirmed():
    assert check_transition(BookingStatus.CONFIRMED, BookingAction.COMPLETE).target == BookingStatus.COMPLETED
    with pytest.raises(TransitionRejected):
        check_transition(BookingStatus.PENDING, BookingAction.COMPLETE)


def test_rate_keeps_status_and_needs_completed():
    assert check_transition(BookingStatus.COMPLETED, BookingAction.RATE).target is None
    with pytest.raises(TransitionRejected):
        check_transition(BookingStatus.CANCELLED, BookingAction.RATE)


def test_reschedule_returns_booking_to_pending():
    assert check_transition(BookingStatus.CONFIRMED, BookingAction.RESCHEDULE).target == BookingStatus.PENDING


@pytest.mark.parametrize(
    ("staff_role", "expected"),
    [
        ("owner", ActorRole.OWNER),
        ("admin", ActorRole.ADMIN),
        ("manager", ActorRole.MANAGER),
        ("barber", ActorRole.PROVIDER),
    ],
)
def test_resolve_actor_role_maps_staff_roles(staff_role, expected):
    assert resolve_actor_role(actor_id=5, platform_role="customer", staff_role=staff_role, customer_id=9) == expected


def test_resolve_actor_role_prefers_staff_role_over_customer_relationship():
    role = resolve_actor_role(actor_id=5, platform_role="customer", staff_role="barber", customer_id=5)
    assert role == ActorRole.PROVIDER


def test_resolve_actor_role_customer_and_stranger():
    assert resolve_actor_role(actor_id=5, platform_role="customer", staff_role=None, customer_id=5) == ActorRole.CUSTOMER
    assert resolve_actor_role(actor_id=5, platform_role="customer", staff_role=None, customer_id=6) is None


def test_super_admin_platform_role_wins():
    role = resolve_actor_role(actor_id=1, platform_role="super_admin", staff_role="barber", customer_id=2)
    assert role == ActorRole.SUPER_ADMIN


@pytest.mark.parametrize("role", MANAGING_ROLES)
def test_managing_roles_may_confirm_and_cancel(role):
    authorize(role, BookingAction.CONFIRM)
    authorize(role, BookingAction.CANCEL)
    authorize(role, BookingAction.REJECT)


@pytest.mark.parametrize("action", list(BookingAction))
def test_provider_is_read_only(action):
    with pytest.raises(NotAuthorized):
        authorize(ActorRole.PROVIDER, action)


def test_customer_permissions():
    authorize(ActorRole.CUSTOMER, BookingAction.CANCEL)
    authorize(ActorRole.CUSTOMER, BookingAction.RESCHEDULE)
    authorize(ActorRole.CUSTOMER, BookingAction.RATE)
    for action in [BookingAction.CONFIRM, BookingAction.REJECT, BookingAction.COMPLETE, BookingAction.MARK_NO_SHOW]:
        with pytest.raises(NotAuthorized):
            authorize(ActorRole.CUSTOMER, action)


def test_unrelated_caller_is_not_authorized():
    with pytest.raises(NotAuthorized):
        authorize(None, BookingAction.CANCEL)


@pytest.mark.parametrize("reason", [None, "", "   ", "\n\t"])
def test_staff_cancellation_requires_reason(reason):
    with pytest.raises(ReasonRequired):
        normalize_cancellation_reason(ActorRole.MANAGER, reason)


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_customer_cancellation_defaults_reason(reason):
    assert normalize_cancellation_reason(ActorRole.CUSTOMER, reason) == CUSTOMER_CANCELLATION_REASON
    assert CUSTOMER_CANCELLATION_REASON == "Cancelled by customer"


def test_cancellation_reason_is_trimmed():
    assert normalize_cancellation_reason(ActorRole.ADMIN, "  Barber is sick  ") == "Barber is sick"
    assert normalize_cancellation_reason(ActorRole.CUSTOMER, " Running late ") == "Running late"


def test_rejection_note_is_prefixed_and_required():
    assert rejection_note(" Fully booked ") == "[REJECTED] Fully booked"
    with pytest.raises(ReasonRequired):
        rejection_note("  ")


def test_available_actions_for_completed_booking():
    assert available_actions(ActorRole.CUSTOMER, BookingStatus.COMPLETED) == [BookingAction.RATE]
    assert available_actions(ActorRole.CUSTOMER, BookingStatus.COMPLETED, already_rated=True) == []
    assert available_actions(ActorRole.MANAGER, BookingStatus.COMPLETED) == []


def test_available_actions_never_offer_rating_for_cancelled_booking():
    assert BookingAction.RATE not in available_actions(ActorRole.CUSTOMER, BookingStatus.CANCELLED)


def test_available_actions_for_pending_booking():
    assert available_actions(ActorRole.MANAGER, BookingStatus.PENDING) == [
        BookingAction.CONFIRM,
        BookingAction.REJECT,
        BookingAction.CANCEL,
        BookingAction.MARK_NO_SHOW,
    ]
    assert available_actions(ActorRole.CUSTOMER, BookingStatus.PENDING) == [
        BookingAction.CANCEL,
        BookingAction.RESCHEDULE,
    ]
    assert available_actions(ActorRole.PROVIDER, BookingStatus.PENDING) == []
