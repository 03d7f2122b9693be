from __future__ import annotations

from typing import Final

from pydantic import BaseModel, ConfigDict, Field

HTTPS_PREFIX: Final[str] = "https://"


class AlertRequest(BaseModel):
    """
    JSON body of POST /api/send-sms and POST /api/make-call:

      { "message": "Help", "location": "Park", "mapsUrl": "https://maps.example/x" }

    ``location`` and ``mapsUrl`` are optional here so that a missing field
    reaches the dispatcher and comes back as a 400 with our own message,
    instead of FastAPI's generic body validation error.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    location: str | None = None
    maps_url: str | None = Field(default=None, alias="mapsUrl")


def resolve_message(message: str | None, default_message: str) -> str:
    return message or default_message


def compose_sms_body(message: str, location: str, maps_url: str) -> str:
    # Caller-supplied text goes into the body as-is.
    return f"{message} {location} Map: {maps_url}"


def strip_https(url: str) -> str:
    """Drop a literal leading ``https://``; anything else passes through."""
    if url.startswith(HTTPS_PREFIX):
        return url[len(HTTPS_PREFIX) :]
    return url


def compose_voice_script(message: str, location: str, maps_url: str) -> str:
    return f"{message} Location: {location}. View on Google Maps at {strip_https(maps_url)}."


def compose_twiml(script: str, voice: str = "alice") -> str:
    """
    Wrap the script in a minimal TwiML <Say> envelope.

    The script is NOT XML-escaped: a message containing ``<`` or ``&`` ends up
    in the markup verbatim.
    """
    return f'<Response><Say voice="{voice}">{script}</Say></Response>'
