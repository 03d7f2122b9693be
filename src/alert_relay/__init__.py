from __future__ import annotations

from dotenv import load_dotenv

# Pick up TWILIO_* and ALERT_* from a local .env before settings are read.
load_dotenv()
