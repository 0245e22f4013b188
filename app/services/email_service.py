from datetime import datetime
from typing import Optional
import logging

from app.core.config import settings
from app.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for booking notifications; delivery is handed to an external provider"""

    def __init__(self, from_email: str = None, enabled: bool = None):
        self.from_email = from_email or settings.FROM_EMAIL
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    def _deliver(self, to_email: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.debug(f"Notifications disabled, skipping '{subject}' for {to_email}")
            return False
        if not to_email:
            raise NotificationError("Recipient email is required")
        logger.info(f"Sending '{subject}' email from {self.from_email} to {to_email}")
        logger.debug(body)
        return True

    async def send_booking_request_tutor(
        self,
        to_email: str,
        tutor_name: str,
        student_name: str,
        start_time: datetime,
        subject: str
    ) -> bool:
        """Tell a tutor a student asked for a lesson"""
        return self._deliver(
            to_email,
            "New lesson request",
            f"Hi {tutor_name}, {student_name} requested a {subject} lesson on {start_time.isoformat()}."
        )

    async def send_booking_confirmation_student(
        self,
        to_email: str,
        student_name: str,
        tutor_name: str,
        start_time: datetime,
        subject: str,
        meeting_link: Optional[str] = None
    ) -> bool:
        """Send booking confirmation email to student"""
        body = f"Hi {student_name}, {tutor_name} confirmed your {subject} lesson on {start_time.isoformat()}."
        if meeting_link:
            body += f" Join at {meeting_link}."
        return self._deliver(to_email, "Lesson confirmed", body)

    async def send_booking_cancellation(
        self,
        to_email: str,
        recipient_name: str,
        start_time: datetime,
        subject: str,
        reason: Optional[str] = None
    ) -> bool:
        """Send booking cancellation email"""
        body = f"Hi {recipient_name}, the {subject} lesson on {start_time.isoformat()} was cancelled."
        if reason:
            body += f" Reason: {reason}"
        return self._deliver(to_email, "Lesson cancelled", body)

    async def send_booking_reschedule(
        self,
        to_email: str,
        recipient_name: str,
        old_start_time: datetime,
        new_start_time: datetime,
        subject: str
    ) -> bool:
        """Send booking reschedule email"""
        return self._deliver(
            to_email,
            "Lesson rescheduled",
            f"Hi {recipient_name}, the {subject} lesson moved from "
            f"{old_start_time.isoformat()} to {new_start_time.isoformat()}."
        )

    async def send_lesson_completed_student(
        self,
        to_email: str,
        student_name: str,
        tutor_name: str,
        subject: str
    ) -> bool:
        """Invite the student to rate a finished lesson"""
        return self._deliver(
            to_email,
            "How was your lesson?",
            f"Hi {student_name}, your {subject} lesson with {tutor_name} is complete. You can now rate it."
        )
