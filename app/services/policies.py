"""
Booking state machine and authorization rules.

The transition table lists, for every lifecycle action, the statuses it may
start from, the status it produces and the roles allowed to request it.
Ownership, role and notice-period checks live in small functions so the
lifecycle service stays a sequence of lookups and one guarded write.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional
import enum
import uuid

from app.core.config import Settings, settings
from app.core.exceptions import CancellationPolicyError, ForbiddenError, InvalidTransitionError
from app.models.booking import Booking, BookingStatus
from app.models.user import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as seen by the services"""
    id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class BookingAction(str, enum.Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    RESCHEDULE = "reschedule"
    VIEW = "view"
    UPDATE_MEETING = "update_meeting"
    ADD_FEEDBACK = "add_feedback"
    UPDATE_NOTES = "update_notes"
    RESOLVE_DISPUTE = "resolve_dispute"


@dataclass(frozen=True)
class Transition:
    action: BookingAction
    sources: FrozenSet[BookingStatus]
    target: BookingStatus
    roles: FrozenSet[UserRole]


_OPEN = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED})

TRANSITIONS: Dict[BookingAction, Transition] = {
    BookingAction.CONFIRM: Transition(
        BookingAction.CONFIRM, _OPEN, BookingStatus.CONFIRMED,
        frozenset({UserRole.TUTOR}),
    ),
    BookingAction.CANCEL: Transition(
        BookingAction.CANCEL, _OPEN, BookingStatus.CANCELLED,
        frozenset({UserRole.STUDENT, UserRole.TUTOR, UserRole.ADMIN}),
    ),
    BookingAction.COMPLETE: Transition(
        BookingAction.COMPLETE, _OPEN, BookingStatus.COMPLETED,
        frozenset({UserRole.TUTOR}),
    ),
    BookingAction.RESCHEDULE: Transition(
        BookingAction.RESCHEDULE, _OPEN, BookingStatus.RESCHEDULED,
        frozenset({UserRole.STUDENT, UserRole.TUTOR, UserRole.ADMIN}),
    ),
}

# Target statuses reachable through the generic status endpoint
STATUS_ACTIONS: Dict[BookingStatus, BookingAction] = {
    BookingStatus.CONFIRMED: BookingAction.CONFIRM,
    BookingStatus.CANCELLED: BookingAction.CANCEL,
    BookingStatus.COMPLETED: BookingAction.COMPLETE,
}


def action_for_status(target: BookingStatus) -> BookingAction:
    try:
        return STATUS_ACTIONS[target]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot set status to '{target.value}'. Must be confirmed, cancelled, or completed",
            details={"target_status": target.value},
        )


def check_transition(action: BookingAction, booking: Booking) -> Transition:
    """Return the transition for ``action`` or raise if the booking's status forbids it"""
    transition = TRANSITIONS[action]
    if booking.status not in transition.sources:
        raise InvalidTransitionError(
            f"Cannot {action.value} a {booking.status.value} booking",
            details={"booking_id": str(booking.id), "status": booking.status.value},
        )
    return transition


def is_party(actor: Actor, booking: Booking) -> bool:
    return actor.id in (booking.student_id, booking.tutor_id)


def is_assigned_tutor(actor: Actor, booking: Booking) -> bool:
    return actor.role == UserRole.TUTOR and actor.id == booking.tutor_id


def is_owning_student(actor: Actor, booking: Booking) -> bool:
    return actor.role == UserRole.STUDENT and actor.id == booking.student_id


def authorize(action: BookingAction, actor: Actor, booking: Booking) -> None:
    """Raise ForbiddenError unless ``actor`` may perform ``action`` on ``booking``"""
    if action in (BookingAction.CONFIRM, BookingAction.COMPLETE,
                  BookingAction.ADD_FEEDBACK, BookingAction.UPDATE_NOTES):
        if actor.role != UserRole.TUTOR:
            raise ForbiddenError(f"Only tutors can {action.value.replace('_', ' ')} bookings")
        allowed = is_assigned_tutor(actor, booking)
    elif action in (BookingAction.CANCEL, BookingAction.RESCHEDULE, BookingAction.VIEW):
        allowed = actor.is_admin or is_owning_student(actor, booking) or is_assigned_tutor(actor, booking)
    elif action == BookingAction.UPDATE_MEETING:
        allowed = is_owning_student(actor, booking) or is_assigned_tutor(actor, booking)
    elif action == BookingAction.RESOLVE_DISPUTE:
        allowed = actor.is_admin
    else:
        allowed = False

    if not allowed:
        raise ForbiddenError(
            "You can only access your own bookings",
            details={"action": action.value, "booking_id": str(booking.id)},
        )


@dataclass(frozen=True)
class BookingPolicy:
    """Timing rules for the lifecycle, read from settings by default"""
    cancellation_notice_hours: float = 24
    reschedule_notice_hours: float = 24
    enforce_student_cancellation_notice: bool = True
    enforce_tutor_cancellation_notice: bool = True
    allow_early_completion: bool = True
    min_duration_hours: float = 0.5
    max_duration_hours: float = 8

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "BookingPolicy":
        return cls(
            cancellation_notice_hours=config.CANCELLATION_NOTICE_HOURS,
            reschedule_notice_hours=config.RESCHEDULE_NOTICE_HOURS,
            enforce_student_cancellation_notice=config.ENFORCE_STUDENT_CANCELLATION_NOTICE,
            enforce_tutor_cancellation_notice=config.ENFORCE_TUTOR_CANCELLATION_NOTICE,
            allow_early_completion=config.ALLOW_EARLY_COMPLETION,
            min_duration_hours=config.MIN_BOOKING_DURATION_HOURS,
            max_duration_hours=config.MAX_BOOKING_DURATION_HOURS,
        )

    def required_notice(self, action: BookingAction, actor: Actor) -> Optional[timedelta]:
        """Minimum time between now and the lesson start, or None when exempt"""
        if actor.is_admin:
            return None
        if action == BookingAction.CANCEL:
            if actor.role == UserRole.STUDENT and not self.enforce_student_cancellation_notice:
                return None
            if actor.role == UserRole.TUTOR and not self.enforce_tutor_cancellation_notice:
                return None
            return timedelta(hours=self.cancellation_notice_hours)
        if action == BookingAction.RESCHEDULE:
            return timedelta(hours=self.reschedule_notice_hours)
        return None

    def check_notice(self, action: BookingAction, actor: Actor, booking: Booking, now: datetime) -> None:
        notice = self.required_notice(action, actor)
        if notice is None:
            return
        if booking.scheduled_date - now < notice:
            hours = notice.total_seconds() / 3600
            verb = "cancelled" if action == BookingAction.CANCEL else "rescheduled"
            raise CancellationPolicyError(
                f"Bookings can only be {verb} {hours:g} hours before the scheduled time",
                details={"booking_id": str(booking.id), "required_notice_hours": hours},
            )
