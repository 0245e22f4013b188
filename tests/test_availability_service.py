from datetime import timedelta

import pytest

from app.models.booking import BookingStatus
from app.services.availability_service import AvailabilityService, windows_overlap
from conftest import NOW

START = NOW + timedelta(days=1)


def hours(n: float):
    return START + timedelta(hours=n)


class TestWindowsOverlap:
    def test_touching_windows_do_not_overlap(self):
        assert not windows_overlap(hours(0), hours(1), hours(1), hours(2))
        assert not windows_overlap(hours(1), hours(2), hours(0), hours(1))

    def test_partial_and_enclosing_windows_overlap(self):
        assert windows_overlap(hours(0), hours(1), hours(0.5), hours(1.5))
        assert windows_overlap(hours(0), hours(3), hours(1), hours(2))
        assert windows_overlap(hours(1), hours(2), hours(0), hours(3))


class TestAvailabilityService:
    @pytest.fixture
    async def existing(self, student, tutor, make_booking):
        # Occupies [START, START + 1h)
        return await make_booking(student, tutor, start=START, duration=1.0, status=BookingStatus.CONFIRMED)

    @pytest.mark.parametrize(
        "start, end, expected",
        [
            (-1, 0, False),
            (1, 2, False),
            (-0.5, 0.5, True),
            (0.5, 1.5, True),
            (0.25, 0.75, True),
            (-1, 2, True),
        ],
    )
    async def test_half_open_windows(self, db, tutor, existing, start, end, expected):
        service = AvailabilityService(db)
        assert await service.has_conflict(tutor.user_id, hours(start), hours(end)) is expected

    async def test_pending_bookings_hold_the_slot(self, db, student, tutor, make_booking):
        await make_booking(student, tutor, start=START, status=BookingStatus.PENDING)
        assert await AvailabilityService(db).has_conflict(tutor.user_id, hours(0), hours(1))

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    async def test_closed_bookings_free_the_slot(self, db, student, tutor, make_booking, status):
        await make_booking(student, tutor, start=START, status=status)
        assert not await AvailabilityService(db).has_conflict(tutor.user_id, hours(0), hours(1))

    async def test_excluded_booking_is_ignored(self, db, tutor, existing):
        service = AvailabilityService(db)
        assert not await service.has_conflict(tutor.user_id, hours(0), hours(1), exclude_booking_id=existing.id)

    async def test_other_tutors_bookings_are_ignored(self, db, existing, make_tutor):
        other = await make_tutor()
        assert not await AvailabilityService(db).has_conflict(other.user_id, hours(0), hours(1))

    async def test_find_conflicts_returns_overlapping_bookings(self, db, student, tutor, existing, make_booking):
        later = await make_booking(student, tutor, start=hours(2), status=BookingStatus.PENDING)
        conflicts = await AvailabilityService(db).find_conflicts(tutor.user_id, hours(0.5), hours(2.5))
        assert [b.id for b in conflicts] == [existing.id, later.id]

    async def test_lock_tutor_returns_profile(self, db, tutor):
        locked = await AvailabilityService(db).lock_tutor(tutor.user_id)
        assert locked.id == tutor.id
