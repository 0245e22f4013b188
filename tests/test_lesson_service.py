from datetime import timedelta

import pytest
from sqlalchemy import update

from app.core.exceptions import (
    ForbiddenError,
    InvalidPreconditionError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.booking import Booking, BookingStatus
from app.services.booking_service import BookingService
from app.services.lesson_service import LessonService
from app.services.policies import BookingPolicy
from conftest import NOW, tutor_actor


@pytest.fixture
def lesson_service(db, clock, booking_service):
    return LessonService(db, booking_service=booking_service, clock=clock)


class TestCompletableQueue:
    async def test_only_ended_confirmed_lessons_are_listed(self, lesson_service, student, tutor, make_booking):
        ended_late = await make_booking(student, tutor, start=NOW - timedelta(hours=2), status=BookingStatus.CONFIRMED)
        ended_early = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.CONFIRMED)
        await make_booking(student, tutor, start=NOW + timedelta(hours=1), status=BookingStatus.CONFIRMED)
        await make_booking(student, tutor, start=NOW - timedelta(days=2), status=BookingStatus.PENDING)
        await make_booking(student, tutor, start=NOW - timedelta(days=3), status=BookingStatus.COMPLETED)

        page = await lesson_service.list_completable(tutor.user_id)

        assert page.total == 2
        assert [b.id for b in page.items] == [ended_early.id, ended_late.id]

    async def test_lesson_ending_now_is_completable(self, lesson_service, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(hours=1), status=BookingStatus.CONFIRMED)
        page = await lesson_service.list_completable(tutor.user_id)
        assert [b.id for b in page.items] == [booking.id]

    async def test_other_tutors_lessons_are_not_listed(self, lesson_service, student, tutor, make_tutor, make_booking):
        other = await make_tutor()
        await make_booking(student, other, start=NOW - timedelta(hours=3), status=BookingStatus.CONFIRMED)
        page = await lesson_service.list_completable(tutor.user_id)
        assert page.total == 0


class TestMarkCompleted:
    async def test_records_notes_and_completion_time(self, lesson_service, clock, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(hours=2), status=BookingStatus.CONFIRMED)

        completed = await lesson_service.mark_completed(
            tutor_actor(tutor),
            booking.id,
            lesson_notes="Quadratic equations",
            next_steps="Exercises 4-9",
            student_progress="Solid",
        )

        assert completed.status == BookingStatus.COMPLETED
        assert completed.completed_at == clock.now
        assert completed.lesson_notes == "Quadratic equations"
        assert completed.next_steps == "Exercises 4-9"
        assert completed.student_progress == "Solid"
        assert completed.can_be_rated

    async def test_early_completion_allowed_by_default(self, lesson_service, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW + timedelta(days=1), status=BookingStatus.CONFIRMED)
        completed = await lesson_service.mark_completed(tutor_actor(tutor), booking.id)
        assert completed.status == BookingStatus.COMPLETED

    async def test_early_completion_can_be_forbidden(self, db, clock, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW + timedelta(days=1), status=BookingStatus.CONFIRMED)
        strict = BookingService(db, policy=BookingPolicy(allow_early_completion=False), clock=clock)
        service = LessonService(db, booking_service=strict, clock=clock)

        with pytest.raises(InvalidTransitionError):
            await service.mark_completed(tutor_actor(tutor), booking.id)


class TestUpdateNotes:
    async def test_updates_notes_of_completed_lesson(self, lesson_service, clock, student, tutor, make_booking):
        booking = await make_booking(
            student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED, lesson_notes="Draft"
        )
        clock.advance(hours=1)

        updated = await lesson_service.update_notes(tutor_actor(tutor), booking.id, next_steps="Read chapter 3")

        assert updated.status == BookingStatus.COMPLETED
        assert updated.lesson_notes == "Draft"
        assert updated.next_steps == "Read chapter 3"
        assert updated.notes_updated_at == clock.now

    async def test_lesson_must_be_completed(self, lesson_service, student, tutor, make_booking):
        booking = await make_booking(student, tutor, status=BookingStatus.CONFIRMED)
        with pytest.raises(InvalidPreconditionError):
            await lesson_service.update_notes(tutor_actor(tutor), booking.id, lesson_notes="Notes")

    async def test_only_assigned_tutor(self, lesson_service, student, tutor, make_tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED)
        other = await make_tutor()
        with pytest.raises(ForbiddenError):
            await lesson_service.update_notes(tutor_actor(other), booking.id, lesson_notes="Notes")

    async def test_needs_at_least_one_field(self, lesson_service, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED)
        with pytest.raises(ValidationError):
            await lesson_service.update_notes(tutor_actor(tutor), booking.id)

    async def test_notes_write_requires_completed_row(self, db, lesson_service, student, tutor, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED)
        # The stored row no longer matches what this session validated
        await db.execute(
            update(Booking)
            .where(Booking.id == booking.id)
            .values(status=BookingStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        with pytest.raises(InvalidTransitionError):
            await lesson_service._write_notes(booking, {"lesson_notes": "Late edit"})

    async def test_completed_list_newest_first(self, lesson_service, clock, student, tutor, make_booking):
        first = await make_booking(
            student, tutor, start=NOW - timedelta(days=3), status=BookingStatus.COMPLETED,
            completed_at=NOW - timedelta(days=3),
        )
        second = await make_booking(
            student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED,
            completed_at=NOW - timedelta(days=1),
        )

        page = await lesson_service.list_completed(tutor.user_id)
        assert [b.id for b in page.items] == [second.id, first.id]
