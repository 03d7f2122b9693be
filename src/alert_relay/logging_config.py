from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once, to stdout."""
    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_alert_relay", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._alert_relay = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # Twilio logs every request/response at INFO
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
