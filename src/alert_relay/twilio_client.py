from __future__ import annotations

from twilio.rest import Client

from .config import Settings


def get_twilio_client(settings: Settings) -> Client:
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise RuntimeError(
            "Twilio credentials are not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN)"
        )

    return Client(settings.twilio_account_sid, settings.twilio_auth_token)


def send_sms(client: Client, from_number: str, to: str, body: str) -> str:
    """
    Send one SMS and return the message SID Twilio acknowledged it with.

    Blocking; the dispatcher runs it in a worker thread.
    """
    message = client.messages.create(
        to=to,
        from_=from_number,
        body=body,
    )
    return message.sid


def place_call(client: Client, from_number: str, to: str, twiml: str) -> str:
    """Place one voice call that plays ``twiml`` and return the call SID."""
    call = client.calls.create(
        to=to,
        from_=from_number,
        twiml=twiml,
    )
    return call.sid
