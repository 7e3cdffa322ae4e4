# unimeet/services/notifier.py
"""
Notification collaborator.

The engine only decides *that* a participant must hear about a meeting;
delivery (email templates, inboxes) belongs to the mailer. Every call goes
through `safe_notify`, so a failing notifier can never undo a booking or a
transition that was already committed.
"""
import logging
from typing import Protocol

from unimeet.models.meeting import Meeting
from unimeet.services.twilio_client import (
    TwilioClient,
    get_twilio_client,
    twilio_configured,
)

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_meeting_created(self, meeting: Meeting) -> None: ...

    def notify_meeting_confirmed(self, meeting: Meeting) -> None: ...

    def notify_meeting_cancelled(self, meeting: Meeting) -> None: ...

    def notify_reminder_due(self, meeting: Meeting) -> None: ...


class LoggingNotifier:
    """Default notifier: records the intent in the log for the mailer to pick up."""

    def _log(self, event: str, meeting: Meeting) -> None:
        logger.info(
            "notify %s meeting=%s code=%s student=%s representative=%s start=%s",
            event,
            meeting.id,
            meeting.meeting_code,
            meeting.student_id,
            meeting.representative_id,
            meeting.start_time.isoformat(),
        )

    def notify_meeting_created(self, meeting: Meeting) -> None:
        self._log("created", meeting)

    def notify_meeting_confirmed(self, meeting: Meeting) -> None:
        self._log("confirmed", meeting)

    def notify_meeting_cancelled(self, meeting: Meeting) -> None:
        self._log("cancelled", meeting)

    def notify_reminder_due(self, meeting: Meeting) -> None:
        self._log("reminder", meeting)


class SmsNotifier(LoggingNotifier):
    """
    Logs like LoggingNotifier and additionally texts the representative
    when their profile carries a phone number.
    """

    def __init__(self, twilio_client: TwilioClient):
        self._twilio = twilio_client

    def _text_representative(self, meeting: Meeting, body: str) -> None:
        rep = meeting.representative
        if rep is None or not rep.phone:
            return
        self._twilio.send_sms(to_number=rep.phone, body=body)

    def notify_meeting_created(self, meeting: Meeting) -> None:
        super().notify_meeting_created(meeting)
        self._text_representative(
            meeting,
            f"New meeting request {meeting.meeting_code} "
            f"for {meeting.start_time:%Y-%m-%d %H:%M} UTC ({meeting.status}).",
        )

    def notify_meeting_confirmed(self, meeting: Meeting) -> None:
        super().notify_meeting_confirmed(meeting)
        self._text_representative(
            meeting,
            f"Meeting {meeting.meeting_code} confirmed for "
            f"{meeting.start_time:%Y-%m-%d %H:%M} UTC.",
        )

    def notify_meeting_cancelled(self, meeting: Meeting) -> None:
        super().notify_meeting_cancelled(meeting)
        self._text_representative(
            meeting,
            f"Meeting {meeting.meeting_code} on "
            f"{meeting.start_time:%Y-%m-%d %H:%M} UTC is now {meeting.status}.",
        )

    def notify_reminder_due(self, meeting: Meeting) -> None:
        super().notify_reminder_due(meeting)
        self._text_representative(
            meeting,
            f"Reminder: meeting {meeting.meeting_code} starts "
            f"{meeting.start_time:%Y-%m-%d %H:%M} UTC.",
        )


def safe_notify(notifier: Notifier, event: str, meeting: Meeting) -> bool:
    """
    Call `notifier.notify_<event>(meeting)`, logging and swallowing failures.

    Returns True when the notifier returned normally.
    """
    try:
        getattr(notifier, f"notify_{event}")(meeting)
    except Exception:
        logger.exception(
            "Notifier failed for %s on meeting %s; continuing", event, meeting.id
        )
        return False
    return True


def get_notifier() -> Notifier:
    """
    FastAPI dependency: SMS-capable notifier when Twilio is configured,
    log-only otherwise.
    """
    if twilio_configured():
        return SmsNotifier(get_twilio_client())
    return LoggingNotifier()
