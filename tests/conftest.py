from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from alert_relay.config import Settings
from alert_relay.main import create_app

RECIPIENTS = ("+15551110001", "+15551110002", "+447700900123")


class FakeResource:
    """Stands in for ``client.messages`` / ``client.calls``; records every create()."""

    def __init__(self, sid_prefix: str) -> None:
        self.sid_prefix = sid_prefix
        self.calls: list[dict[str, Any]] = []
        # to-number -> exception raised for that recipient
        self.failures: dict[str, Exception] = {}
        self._lock = threading.Lock()

    def create(self, **kwargs: Any) -> Any:
        with self._lock:
            self.calls.append(kwargs)
            index = len(self.calls)
        exc = self.failures.get(kwargs["to"])
        if exc is not None:
            raise exc
        return type("Instance", (), {"sid": f"{self.sid_prefix}{index:04d}"})()


class FakeTwilioClient:
    def __init__(self) -> None:
        self.messages = FakeResource("SM")
        self.calls = FakeResource("CA")


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "twilio_account_sid": "ACtest",
        "twilio_auth_token": "secret",
        "twilio_from_number": "+15550009999",
        "recipients": ",".join(RECIPIENTS),
        "default_message": "Emergency Alert! Please assist immediately.",
        "voice": "alice",
        "public_dir": tmp_path / "public",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def fake_client() -> FakeTwilioClient:
    return FakeTwilioClient()


@pytest.fixture
def http(settings: Settings, fake_client: FakeTwilioClient) -> Iterator[TestClient]:
    app = create_app(settings, client=fake_client)  # type: ignore[arg-type]
    with TestClient(app) as client:
        yield client
