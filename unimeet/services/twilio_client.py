# unimeet/services/twilio_client.py
"""SMS transport for representative notifications."""
from typing import List

from twilio.rest import Client as TwilioSDKClient

from unimeet.config import get_settings

REQUIRED_SETTINGS = ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER")


class TwilioClient:
    """Sends booking texts from the institution's Twilio number."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self._client = TwilioSDKClient(account_sid, auth_token)
        self._from_number = from_number

    def send_sms(self, to_number: str, body: str) -> str:
        sent = self._client.messages.create(to=to_number, from_=self._from_number, body=body)
        return sent.sid


def missing_twilio_settings() -> List[str]:
    settings = get_settings()
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name)]


def twilio_configured() -> bool:
    return not missing_twilio_settings()


def get_twilio_client() -> TwilioClient:
    missing = missing_twilio_settings()
    if missing:
        raise RuntimeError(f"Twilio not configured, missing: {', '.join(missing)}")

    settings = get_settings()
    return TwilioClient(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
    )
