# app/services/notifications.py
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Callable, List, Protocol

from app.core.config import Settings, get_settings
from app.schemas.notification import NotificationEvent, NotificationKind

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """
    Anything that can deliver a NotificationEvent. Implementations may
    raise; the SideEffectDispatcher logs and swallows delivery failures.
    """

    async def notify(self, event: NotificationEvent) -> None:
        ...


class LoggingNotificationSink:
    """
    Default sink used when no delivery channel is configured.
    """

    async def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification %s for user=%s booking=%s waitlist_entry=%s recipients=%s",
            event.kind.value,
            event.user_id,
            event.booking_id,
            event.waitlist_entry_id,
            event.recipients,
        )


_SUBJECTS = {
    NotificationKind.BOOKING_CONFIRMED: "Booking confirmed: {title}",
    NotificationKind.ATTENDEE_INVITATION: "Invitation: {title}",
    NotificationKind.BOOKING_UPDATED: "Booking updated: {title}",
    NotificationKind.BOOKING_CANCELLED: "Booking cancelled: {title}",
    NotificationKind.WAITLIST_SLOT_AVAILABLE: "A slot you are waiting for is available",
    NotificationKind.BOOKING_REMINDER: "Reminder: {title} starts soon",
}


def _default_email_resolver(user_id: str | None) -> str | None:
    if user_id and "@" in user_id:
        return user_id
    return None


def build_notification_email_body(event: NotificationEvent) -> str:
    """
    Build a plain-text body for a notification email.
    """
    room = event.room_name or f"room #{event.room_id}"
    window = f"{event.start_time.isoformat()} → {event.end_time.isoformat()}"

    lines: list[str] = []
    if event.kind == NotificationKind.WAITLIST_SLOT_AVAILABLE:
        lines.append(f"Good news: {room} is now free for {window}.")
        lines.append("Book it soon, the slot goes to whoever books first.")
    elif event.kind == NotificationKind.BOOKING_REMINDER:
        lines.append(f"'{event.title}' in {room} starts in {event.reminder_type}.")
        lines.append(f"When: {window}")
    else:
        lines.append(f"'{event.title}' in {room}")
        lines.append(f"When: {window}")
        lines.append(f"Status: {event.kind.value.replace('_', ' ').lower()}")

    lines.append("")
    lines.append("Regards,")
    lines.append("Room Scheduler")
    return "\n".join(lines)


class SmtpNotificationSink:
    """
    Delivers notifications as emails over SMTP.

    Recipients are the event's explicit `recipients` plus the address of
    `user_id` as resolved by `email_resolver` (by default, user ids that
    look like email addresses are used as-is).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        email_resolver: Callable[[str | None], str | None] = _default_email_resolver,
    ) -> None:
        self._settings = settings
        self.email_resolver = email_resolver

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _recipients(self, event: NotificationEvent) -> List[str]:
        recipients = list(event.recipients)
        own = self.email_resolver(event.user_id)
        if own and own not in recipients:
            recipients.insert(0, own)
        return recipients

    async def notify(self, event: NotificationEvent) -> None:
        await asyncio.to_thread(self.send, event)

    def send(self, event: NotificationEvent) -> bool:
        """
        Send the event via SMTP.

        Returns
        -------
        bool
            True if a message was handed to the SMTP server.
            False if SMTP is not configured or there is nobody to send to.
            SMTP errors propagate to the caller.
        """
        settings = self.settings
        if not settings.SMTP_HOST or not settings.SMTP_FROM_ADDRESS:
            return False

        recipients = self._recipients(event)
        if not recipients:
            return False

        subject = _SUBJECTS[event.kind].format(title=event.title or "")

        msg = EmailMessage()
        msg["Subject"] = f"[{settings.APP_NAME}] {subject}"
        msg["From"] = settings.SMTP_FROM_ADDRESS
        msg["To"] = ", ".join(recipients)
        msg.set_content(build_notification_email_body(event))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
        return True


def build_notification_sink(settings: Settings) -> NotificationSink:
    if settings.SMTP_HOST and settings.SMTP_FROM_ADDRESS:
        return SmtpNotificationSink(settings)
    return LoggingNotificationSink()
