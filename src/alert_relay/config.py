from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import StartupConfigError

DEFAULT_MESSAGE = "Emergency Alert! Please assist immediately."

_RECIPIENT_SPLIT_RE = re.compile(r"[,;\s]+")


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    # Project root (repo root in local dev)
    project_root: Path = Path(__file__).resolve().parents[2]

    # --- Twilio credentials (all three required at startup) ---
    twilio_account_sid: str | None = Field(default_factory=lambda: _env("TWILIO_ACCOUNT_SID"))
    twilio_auth_token: str | None = Field(default_factory=lambda: _env("TWILIO_AUTH_TOKEN"))
    twilio_from_number: str | None = Field(default_factory=lambda: _env("TWILIO_PHONE_NUMBER"))

    # --- Alert content ---
    # ALERT_RECIPIENTS="+15551234567,+447700900123"
    recipients: tuple[str, ...] = Field(default_factory=lambda: _env("ALERT_RECIPIENTS", ""))
    default_message: str = Field(
        default_factory=lambda: _env("ALERT_DEFAULT_MESSAGE", DEFAULT_MESSAGE)
    )
    voice: str = Field(default_factory=lambda: _env("ALERT_VOICE", "alice"))

    # Static assets; only mounted when the directory exists.
    public_dir: Path | None = Field(default_factory=lambda: _env("PUBLIC_DIR"))

    # --- Server ---
    host: str = Field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(_env("PORT", "3000")))
    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())

    @field_validator("recipients", mode="before")
    @classmethod
    def _split_recipients(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(part for part in _RECIPIENT_SPLIT_RE.split(value) if part)
        return value

    def model_post_init(self, __context: object) -> None:  # type: ignore[override]
        if self.public_dir is None:
            object.__setattr__(self, "public_dir", self.project_root / "public")

    def missing_credentials(self) -> list[str]:
        """Names of the required Twilio environment variables that are unset."""
        required = {
            "TWILIO_ACCOUNT_SID": self.twilio_account_sid,
            "TWILIO_AUTH_TOKEN": self.twilio_auth_token,
            "TWILIO_PHONE_NUMBER": self.twilio_from_number,
        }
        return [name for name, value in required.items() if not value]

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise StartupConfigError(missing)


@lru_cache
def get_settings() -> Settings:
    return Settings()
