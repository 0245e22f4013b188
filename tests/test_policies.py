from datetime import timedelta
import uuid

import pytest

from app.core.exceptions import CancellationPolicyError, ForbiddenError, InvalidTransitionError
from app.models.booking import Booking, BookingStatus
from app.models.user import UserRole
from app.services.policies import (
    Actor,
    BookingAction,
    BookingPolicy,
    action_for_status,
    authorize,
    check_transition,
)
from conftest import NOW

STUDENT = Actor(id=uuid.uuid4(), role=UserRole.STUDENT)
TUTOR = Actor(id=uuid.uuid4(), role=UserRole.TUTOR)
ADMIN = Actor(id=uuid.uuid4(), role=UserRole.ADMIN)
OTHER_STUDENT = Actor(id=uuid.uuid4(), role=UserRole.STUDENT)
OTHER_TUTOR = Actor(id=uuid.uuid4(), role=UserRole.TUTOR)

LIFECYCLE_ACTIONS = [
    BookingAction.CONFIRM,
    BookingAction.CANCEL,
    BookingAction.COMPLETE,
    BookingAction.RESCHEDULE,
]


def booking_with(status=BookingStatus.PENDING, starts_in=timedelta(days=3)) -> Booking:
    return Booking(
        id=uuid.uuid4(),
        student_id=STUDENT.id,
        tutor_id=TUTOR.id,
        subject="Mathematics",
        scheduled_date=NOW + starts_in,
        status=status,
    )


class TestTransitionTable:
    @pytest.mark.parametrize("action", LIFECYCLE_ACTIONS)
    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
    def test_open_bookings_accept_every_lifecycle_action(self, action, status):
        transition = check_transition(action, booking_with(status))
        assert transition.action == action

    @pytest.mark.parametrize("action", LIFECYCLE_ACTIONS)
    @pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
    def test_terminal_bookings_reject_every_lifecycle_action(self, action, status):
        with pytest.raises(InvalidTransitionError):
            check_transition(action, booking_with(status))

    def test_targets(self):
        booking = booking_with()
        assert check_transition(BookingAction.CONFIRM, booking).target == BookingStatus.CONFIRMED
        assert check_transition(BookingAction.CANCEL, booking).target == BookingStatus.CANCELLED
        assert check_transition(BookingAction.COMPLETE, booking).target == BookingStatus.COMPLETED
        assert check_transition(BookingAction.RESCHEDULE, booking).target == BookingStatus.RESCHEDULED

    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.RESCHEDULED])
    def test_status_endpoint_rejects_unsupported_targets(self, status):
        with pytest.raises(InvalidTransitionError):
            action_for_status(status)

    def test_status_endpoint_maps_supported_targets(self):
        assert action_for_status(BookingStatus.CONFIRMED) == BookingAction.CONFIRM
        assert action_for_status(BookingStatus.CANCELLED) == BookingAction.CANCEL
        assert action_for_status(BookingStatus.COMPLETED) == BookingAction.COMPLETE


class TestAuthorize:
    @pytest.mark.parametrize("action", [BookingAction.CONFIRM, BookingAction.COMPLETE])
    def test_only_assigned_tutor_confirms_and_completes(self, action):
        booking = booking_with()
        authorize(action, TUTOR, booking)
        for actor in (STUDENT, OTHER_TUTOR, ADMIN):
            with pytest.raises(ForbiddenError):
                authorize(action, actor, booking)

    @pytest.mark.parametrize("action", [BookingAction.CANCEL, BookingAction.RESCHEDULE, BookingAction.VIEW])
    def test_parties_and_admin_cancel_reschedule_and_view(self, action):
        booking = booking_with()
        for actor in (STUDENT, TUTOR, ADMIN):
            authorize(action, actor, booking)
        for actor in (OTHER_STUDENT, OTHER_TUTOR):
            with pytest.raises(ForbiddenError):
                authorize(action, actor, booking)

    def test_student_cannot_pose_as_tutor_of_own_booking(self):
        # Same id, wrong role
        booking = booking_with()
        with pytest.raises(ForbiddenError):
            authorize(BookingAction.CONFIRM, Actor(id=TUTOR.id, role=UserRole.STUDENT), booking)

    def test_meeting_details_are_for_the_parties_only(self):
        booking = booking_with()
        authorize(BookingAction.UPDATE_MEETING, STUDENT, booking)
        authorize(BookingAction.UPDATE_MEETING, TUTOR, booking)
        with pytest.raises(ForbiddenError):
            authorize(BookingAction.UPDATE_MEETING, ADMIN, booking)

    def test_dispute_resolution_is_admin_only(self):
        booking = booking_with()
        authorize(BookingAction.RESOLVE_DISPUTE, ADMIN, booking)
        for actor in (STUDENT, TUTOR):
            with pytest.raises(ForbiddenError):
                authorize(BookingAction.RESOLVE_DISPUTE, actor, booking)


class TestNoticePolicy:
    def test_cancel_inside_notice_window_is_rejected(self):
        policy = BookingPolicy()
        booking = booking_with(starts_in=timedelta(hours=2))
        with pytest.raises(CancellationPolicyError) as exc_info:
            policy.check_notice(BookingAction.CANCEL, STUDENT, booking, NOW)
        assert "24 hours" in exc_info.value.message
        assert isinstance(exc_info.value, InvalidTransitionError)

    def test_exactly_the_notice_period_is_enough(self):
        policy = BookingPolicy()
        booking = booking_with(starts_in=timedelta(hours=24))
        policy.check_notice(BookingAction.CANCEL, TUTOR, booking, NOW)

    def test_admin_is_exempt(self):
        policy = BookingPolicy()
        booking = booking_with(starts_in=timedelta(minutes=30))
        policy.check_notice(BookingAction.CANCEL, ADMIN, booking, NOW)
        policy.check_notice(BookingAction.RESCHEDULE, ADMIN, booking, NOW)

    def test_student_toggle(self):
        policy = BookingPolicy(enforce_student_cancellation_notice=False)
        booking = booking_with(starts_in=timedelta(hours=2))
        policy.check_notice(BookingAction.CANCEL, STUDENT, booking, NOW)
        with pytest.raises(CancellationPolicyError):
            policy.check_notice(BookingAction.CANCEL, TUTOR, booking, NOW)

    def test_tutor_toggle(self):
        policy = BookingPolicy(enforce_tutor_cancellation_notice=False)
        booking = booking_with(starts_in=timedelta(hours=2))
        policy.check_notice(BookingAction.CANCEL, TUTOR, booking, NOW)
        with pytest.raises(CancellationPolicyError):
            policy.check_notice(BookingAction.CANCEL, STUDENT, booking, NOW)

    def test_reschedule_uses_its_own_threshold(self):
        policy = BookingPolicy(reschedule_notice_hours=48, enforce_student_cancellation_notice=False)
        booking = booking_with(starts_in=timedelta(hours=30))
        with pytest.raises(CancellationPolicyError) as exc_info:
            policy.check_notice(BookingAction.RESCHEDULE, STUDENT, booking, NOW)
        assert "rescheduled 48 hours" in exc_info.value.message

    def test_other_actions_need_no_notice(self):
        policy = BookingPolicy()
        assert policy.required_notice(BookingAction.CONFIRM, TUTOR) is None
        assert policy.required_notice(BookingAction.COMPLETE, TUTOR) is None
