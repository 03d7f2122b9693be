from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Final

from twilio.rest import Client

from .alerts import (
    AlertRequest,
    compose_sms_body,
    compose_twiml,
    compose_voice_script,
    resolve_message,
)
from .config import Settings
from .errors import (
    AlertRelayError,
    AlertValidationError,
    NoValidRecipientsError,
    ProviderDispatchError,
)
from .twilio_client import place_call, send_sms

logger = logging.getLogger(__name__)

E164_RE: Final[re.Pattern[str]] = re.compile(r"\+\d{10,15}")

SMS_FAILURE_PREFIX: Final[str] = "Failed to send SMS"
CALL_FAILURE_PREFIX: Final[str] = "Failed to initiate call"


def is_e164(number: str) -> bool:
    return E164_RE.fullmatch(number) is not None


def filter_recipients(numbers: Sequence[str]) -> list[str]:
    """Keep only E.164 numbers, in their configured order."""
    valid: list[str] = []
    for number in numbers:
        if is_e164(number):
            valid.append(number)
        else:
            logger.warning("Skipping recipient %r: not an E.164 phone number", number)
    return valid


@dataclass(frozen=True)
class DispatchOutcome:
    recipient: str
    delivered: bool
    sid: str | None = None
    reason: str | None = None


@dataclass
class DispatchResult:
    outcomes: list[DispatchOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(o.delivered for o in self.outcomes)

    @property
    def failures(self) -> list[str]:
        return [f"{o.recipient}: {o.reason}" for o in self.outcomes if not o.delivered]


def _failure_reason(exc: Exception) -> str:
    # TwilioRestException keeps the provider's own message in .msg;
    # its str() is a multi-line HTTP dump.
    msg = getattr(exc, "msg", None)
    if isinstance(msg, str) and msg:
        return msg
    return str(exc) or type(exc).__name__


class AlertDispatcher:
    """
    Fan an alert out to every configured recipient through Twilio.

    Settings and the Twilio client are injected; the dispatcher reads no
    environment or module-level state. ``client`` may be None when the
    Twilio client failed to initialise, in which case every dispatch fails.
    """

    def __init__(self, settings: Settings, client: Client | None) -> None:
        self.settings = settings
        self.client = client

    @property
    def client_initialized(self) -> bool:
        return self.client is not None

    def _require_fields(self, request: AlertRequest) -> tuple[str, str]:
        missing = [
            name
            for name, value in (("location", request.location), ("mapsUrl", request.maps_url))
            if not value or not value.strip()
        ]
        if missing:
            raise AlertValidationError(f"Missing required field(s): {', '.join(missing)}")
        assert request.location is not None and request.maps_url is not None
        return request.location, request.maps_url

    async def send_alert(self, request: AlertRequest) -> DispatchResult:
        """Text the alert, with location and map link appended, to every recipient."""
        location, maps_url = self._require_fields(request)
        message = resolve_message(request.message, self.settings.default_message)
        body = compose_sms_body(message, location, maps_url)

        def send(client: Client, to: str) -> str:
            return send_sms(client, self._from_number, to, body)

        return await self._dispatch("SMS", SMS_FAILURE_PREFIX, send)

    async def initiate_call(self, request: AlertRequest) -> DispatchResult:
        """Call every recipient and read the alert out with a synthetic voice."""
        location, maps_url = self._require_fields(request)
        message = resolve_message(request.message, self.settings.default_message)
        twiml = compose_twiml(
            compose_voice_script(message, location, maps_url),
            voice=self.settings.voice,
        )

        def call(client: Client, to: str) -> str:
            return place_call(client, self._from_number, to, twiml)

        return await self._dispatch("call", CALL_FAILURE_PREFIX, call)

    @property
    def _from_number(self) -> str:
        return self.settings.twilio_from_number or ""

    async def _dispatch(
        self,
        kind: str,
        prefix: str,
        attempt: Callable[[Client, str], str],
    ) -> DispatchResult:
        recipients = filter_recipients(self.settings.recipients)
        if not recipients:
            raise NoValidRecipientsError(prefix=prefix)

        client = self.client
        if client is None:
            raise AlertRelayError("Twilio client is not initialized", prefix=prefix)

        # Settle-all: every attempt runs to completion, failures are collected
        # rather than cancelling the rest of the batch.
        settled = await asyncio.gather(
            *(asyncio.to_thread(attempt, client, to) for to in recipients),
            return_exceptions=True,
        )

        result = DispatchResult()
        for to, outcome in zip(recipients, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                reason = _failure_reason(outcome)
                logger.error("%s to %s failed: %s", kind, to, reason)
                result.outcomes.append(DispatchOutcome(recipient=to, delivered=False, reason=reason))
            else:
                logger.info("%s to %s accepted (sid=%s)", kind, to, outcome)
                result.outcomes.append(DispatchOutcome(recipient=to, delivered=True, sid=outcome))

        if not result.success:
            raise ProviderDispatchError(result, prefix=prefix)

        logger.info("%s alert accepted for %d recipient(s)", kind, len(recipients))
        return result
