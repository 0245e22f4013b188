from datetime import timedelta

import pytest

from app.core.exceptions import ForbiddenError, InvalidPreconditionError, NotFoundError, ValidationError
from app.models.booking import BookingStatus, DisputeStatus, PaymentStatus
from app.models.user import UserRole
from app.services.admin_service import AdminService
from app.services.tutor_service import TutorService
from conftest import NOW, actor_for


class TestAdminService:
    async def test_lists_all_bookings_with_filters(self, db, student, tutor, make_tutor, make_booking):
        other = await make_tutor(full_name="Olga Other")
        await make_booking(student, tutor, start=NOW + timedelta(days=1))
        await make_booking(student, other, start=NOW + timedelta(days=2), status=BookingStatus.CONFIRMED)
        await make_booking(student, other, start=NOW + timedelta(days=3), subject="Physics")

        service = AdminService(db)
        everything = await service.list_all_bookings()
        confirmed = await service.list_all_bookings(status=BookingStatus.CONFIRMED)
        by_name = await service.list_all_bookings(search="olga")
        by_subject = await service.list_all_bookings(search="phys", sort_order="asc")

        assert everything.total == 3
        assert everything.items[0].scheduled_date == NOW + timedelta(days=3)
        assert confirmed.total == 1
        assert by_name.total == 2
        assert by_subject.total == 1

    async def test_rejects_unknown_sort_field(self, db):
        with pytest.raises(ValidationError):
            await AdminService(db).list_all_bookings(sort_by="password")

    async def test_resolve_dispute_with_refund(self, db, clock, student, tutor, admin, make_booking):
        booking = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.COMPLETED)

        resolved = await AdminService(db, clock=clock).resolve_dispute(
            actor_for(admin),
            booking.id,
            DisputeStatus.RESOLVED_STUDENT,
            admin_notes="Tutor did not show up",
            resolution="Full refund",
            refund_amount=20,
        )

        assert resolved.dispute_status == DisputeStatus.RESOLVED_STUDENT
        assert resolved.dispute_resolution == "Full refund"
        assert resolved.dispute_resolved_at == clock.now
        assert resolved.refund_amount == 20
        assert resolved.payment_status == PaymentStatus.REFUNDED
        assert resolved.status == BookingStatus.COMPLETED

    async def test_resolve_dispute_without_refund_keeps_payment_status(self, db, student, tutor, admin, make_booking):
        booking = await make_booking(student, tutor, status=BookingStatus.COMPLETED)
        resolved = await AdminService(db).resolve_dispute(actor_for(admin), booking.id, DisputeStatus.DISMISSED)
        assert resolved.payment_status == PaymentStatus.PENDING
        assert resolved.refund_amount is None

    async def test_refund_cannot_exceed_total(self, db, student, tutor, admin, make_booking):
        booking = await make_booking(student, tutor, status=BookingStatus.COMPLETED)
        with pytest.raises(ValidationError):
            await AdminService(db).resolve_dispute(
                actor_for(admin), booking.id, DisputeStatus.RESOLVED_PARTIAL, refund_amount=500
            )

    async def test_only_admin_resolves(self, db, student, tutor, make_booking):
        booking = await make_booking(student, tutor, status=BookingStatus.COMPLETED)
        with pytest.raises(ForbiddenError):
            await AdminService(db).resolve_dispute(actor_for(student), booking.id, DisputeStatus.DISMISSED)


class TestTutorService:
    async def test_get_tutor(self, db, tutor):
        found = await TutorService(db).get_tutor(tutor.user_id)
        assert found.id == tutor.id
        assert found.user.full_name == "Tara Tutor"

    async def test_inactive_tutor_is_hidden(self, db, make_tutor):
        inactive = await make_tutor(is_active=False)
        with pytest.raises(NotFoundError):
            await TutorService(db).get_tutor(inactive.user_id)

    async def test_search_filters(self, db, make_tutor):
        cheap = await make_tutor(subjects=["Spanish"], hourly_rate=15, location="Madrid")
        pricey = await make_tutor(subjects=["Spanish", "French"], hourly_rate=45, location="Paris")
        await make_tutor(subjects=["Mathematics"], hourly_rate=30, location="Madrid")
        await make_tutor(subjects=["Spanish"], hourly_rate=20, is_active=False)
        pricey.average_rating = 4.8
        await db.commit()

        service = TutorService(db)
        spanish = await service.search_tutors(subject="spanish")
        in_madrid = await service.search_tutors(location="madrid")
        affordable = await service.search_tutors(subject="Spanish", max_rate=20)
        top_rated = await service.search_tutors(min_rating=4.5)

        assert spanish.total == 2
        assert spanish.items[0].id == pricey.id
        assert in_madrid.total == 2
        assert [t.id for t in affordable.items] == [cheap.id]
        assert [t.id for t in top_rated.items] == [pricey.id]

    async def test_search_rejects_inverted_rate_range(self, db):
        with pytest.raises(ValidationError):
            await TutorService(db).search_tutors(min_rate=50, max_rate=10)


class TestAccountOversight:
    async def test_deactivating_tutor_cancels_upcoming_lessons(self, db, clock, student, tutor, admin, make_tutor, make_booking):
        tutor_id = tutor.user_id
        pending = await make_booking(student, tutor, start=NOW + timedelta(days=1))
        confirmed = await make_booking(student, tutor, start=NOW + timedelta(days=2), status=BookingStatus.CONFIRMED)
        moved = await make_booking(student, tutor, start=NOW + timedelta(days=3), status=BookingStatus.RESCHEDULED)
        past = await make_booking(student, tutor, start=NOW - timedelta(days=1), status=BookingStatus.CONFIRMED)
        elsewhere = await make_booking(student, await make_tutor(), start=NOW + timedelta(days=1))

        profile, cancelled = await AdminService(db, clock=clock).deactivate_tutor(actor_for(admin), tutor_id, reason="Fraud")

        assert cancelled == 3
        assert profile.is_active is False
        assert profile.deactivation_reason == "Fraud"
        assert profile.deactivated_at == clock.now
        for booking in (pending, confirmed, moved, past, elsewhere):
            await db.refresh(booking)
        for booking in (pending, confirmed, moved):
            assert booking.status == BookingStatus.CANCELLED
            assert booking.cancelled_by == UserRole.ADMIN
            assert booking.cancelled_at == clock.now
            assert booking.cancellation_reason == "Tutor account deactivated by admin"
        assert past.status == BookingStatus.CONFIRMED
        assert elsewhere.status == BookingStatus.PENDING

    async def test_deactivated_tutor_cannot_be_booked_or_found(self, db, clock, booking_service, student, tutor, admin):
        tutor_id, as_student = tutor.user_id, actor_for(student)
        await AdminService(db, clock=clock).deactivate_tutor(actor_for(admin), tutor_id)

        with pytest.raises(NotFoundError):
            await booking_service.create_booking(as_student, tutor_id, "Mathematics", NOW + timedelta(days=2), 1)
        with pytest.raises(NotFoundError):
            await TutorService(db).get_tutor(tutor_id)

    async def test_tutor_activation_round_trip(self, db, clock, tutor, admin):
        tutor_id, as_admin = tutor.user_id, actor_for(admin)
        service = AdminService(db, clock=clock)
        await service.deactivate_tutor(as_admin, tutor_id, reason="Paused")

        with pytest.raises(InvalidPreconditionError):
            await service.deactivate_tutor(as_admin, tutor_id)

        profile = await service.activate_tutor(as_admin, tutor_id)
        assert profile.is_active is True
        assert profile.reactivated_at == clock.now
        assert profile.deactivation_reason is None
        assert profile.deactivated_at is None

        with pytest.raises(InvalidPreconditionError):
            await service.activate_tutor(as_admin, tutor_id)

    async def test_deactivating_user_cancels_their_bookings(self, db, clock, student, tutor, admin, make_booking):
        upcoming = await make_booking(student, tutor, start=NOW + timedelta(days=2), status=BookingStatus.CONFIRMED)

        user, cancelled = await AdminService(db, clock=clock).deactivate_user(actor_for(admin), student.id, reason="Abuse")

        assert cancelled == 1
        assert user.is_active is False
        await db.refresh(upcoming)
        assert upcoming.status == BookingStatus.CANCELLED
        assert upcoming.cancellation_reason == "User account deactivated by admin"

        restored = await AdminService(db, clock=clock).activate_user(actor_for(admin), student.id)
        assert restored.is_active is True
        assert restored.deactivation_reason is None

    async def test_account_changes_need_an_admin(self, db, student, tutor, admin):
        as_admin, as_student, tutor_id = actor_for(admin), actor_for(student), tutor.user_id
        service = AdminService(db)

        with pytest.raises(ForbiddenError):
            await service.deactivate_tutor(as_student, tutor_id)
        with pytest.raises(ValidationError):
            await service.deactivate_user(as_admin, as_admin.id)
        with pytest.raises(NotFoundError):
            await service.deactivate_user(as_admin, tutor.id)
