from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from app.models.booking import Booking
from app.models.user import User
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Booking notifications.

    Every public method is best-effort: failures are logged and swallowed so a
    booking mutation that has already been committed is never reported as failed
    because an email could not be sent.
    """

    def __init__(self, db: AsyncSession, email_service: EmailService = None):
        self.db = db
        self.email_service = email_service or EmailService()

    async def send_booking_created_notification(self, booking: Booking) -> None:
        """Let the tutor know a new request is waiting"""
        try:
            tutor = await self._get_user_details(booking.tutor_id)
            student = await self._get_user_details(booking.student_id)
            if not tutor or not student:
                return

            await self.email_service.send_booking_request_tutor(
                to_email=tutor.email,
                tutor_name=tutor.full_name,
                student_name=student.full_name,
                start_time=booking.start_time,
                subject=booking.subject
            )
        except Exception as e:
            logger.error(f"Error sending booking created notification for {booking.id}: {e}")

    async def send_booking_confirmation_notification(self, booking: Booking) -> None:
        """Send booking confirmation to the student"""
        try:
            tutor = await self._get_user_details(booking.tutor_id)
            student = await self._get_user_details(booking.student_id)
            if not tutor or not student:
                return

            await self.email_service.send_booking_confirmation_student(
                to_email=student.email,
                student_name=student.full_name,
                tutor_name=tutor.full_name,
                start_time=booking.start_time,
                subject=booking.subject,
                meeting_link=booking.meeting_link
            )
        except Exception as e:
            logger.error(f"Error sending booking confirmation notification for {booking.id}: {e}")

    async def send_booking_cancellation_notification(self, booking: Booking) -> None:
        """Notify both parties of a cancellation"""
        try:
            for user_id in (booking.student_id, booking.tutor_id):
                user = await self._get_user_details(user_id)
                if not user:
                    continue
                await self.email_service.send_booking_cancellation(
                    to_email=user.email,
                    recipient_name=user.full_name,
                    start_time=booking.start_time,
                    subject=booking.subject,
                    reason=booking.cancellation_reason
                )
        except Exception as e:
            logger.error(f"Error sending booking cancellation notification for {booking.id}: {e}")

    async def send_booking_reschedule_notification(
        self,
        booking: Booking,
        old_start_time: Optional[datetime] = None
    ) -> None:
        """Notify both parties of a new lesson time"""
        try:
            previous = old_start_time or booking.original_scheduled_date
            for user_id in (booking.student_id, booking.tutor_id):
                user = await self._get_user_details(user_id)
                if not user:
                    continue
                await self.email_service.send_booking_reschedule(
                    to_email=user.email,
                    recipient_name=user.full_name,
                    old_start_time=previous,
                    new_start_time=booking.start_time,
                    subject=booking.subject
                )
        except Exception as e:
            logger.error(f"Error sending booking reschedule notification for {booking.id}: {e}")

    async def send_lesson_completed_notification(self, booking: Booking) -> None:
        """Invite the student to rate the lesson"""
        try:
            tutor = await self._get_user_details(booking.tutor_id)
            student = await self._get_user_details(booking.student_id)
            if not tutor or not student:
                return

            await self.email_service.send_lesson_completed_student(
                to_email=student.email,
                student_name=student.full_name,
                tutor_name=tutor.full_name,
                subject=booking.subject
            )
        except Exception as e:
            logger.error(f"Error sending lesson completed notification for {booking.id}: {e}")

    async def _get_user_details(self, user_id) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
