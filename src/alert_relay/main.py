from __future__ import annotations

import logging
import sys
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from .alerts import AlertRequest
from .config import Settings, get_settings
from .dispatch import AlertDispatcher
from .errors import StartupConfigError, register_error_handlers
from .logging_config import setup_logging
from .twilio_client import get_twilio_client

logger = logging.getLogger(__name__)


def _build_client(settings: Settings) -> Client | None:
    try:
        return get_twilio_client(settings)
    except (RuntimeError, TwilioException) as exc:
        # Keep serving; /api/health reports twilioInitialized=false.
        logger.error("Twilio client initialization failed: %s", exc)
        return None


def get_dispatcher(request: Request) -> AlertDispatcher:
    return request.app.state.dispatcher


def create_app(settings: Settings | None = None, client: Client | None = None) -> FastAPI:
    """
    Build the alert relay app.

    Raises StartupConfigError when any of the three Twilio settings is
    missing. ``client`` is built from settings unless one is passed in.
    """
    settings = settings or get_settings()
    settings.require_credentials()
    if client is None:
        client = _build_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Alert relay ready: %d configured recipient(s), sender %s, twilio initialized=%s",
            len(settings.recipients),
            settings.twilio_from_number,
            client is not None,
        )
        yield

    app = FastAPI(title="alert-relay", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = AlertDispatcher(settings, client)
    register_error_handlers(app)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    # --- Routes ---

    @app.post("/api/send-sms")
    @app.post("/send-sms", include_in_schema=False)
    async def send_sms_alert(
        payload: AlertRequest,
        dispatcher: AlertDispatcher = Depends(get_dispatcher),
    ) -> JSONResponse:
        """
        Text the alert to every configured recipient.

          { "message": "Help", "location": "Park", "mapsUrl": "https://maps.example/x" }

        ``message`` is optional and falls back to the configured default.
        """
        await dispatcher.send_alert(payload)
        return JSONResponse({"success": True})

    @app.post("/api/make-call")
    @app.post("/make-call", include_in_schema=False)
    async def make_call_alert(
        payload: AlertRequest,
        dispatcher: AlertDispatcher = Depends(get_dispatcher),
    ) -> JSONResponse:
        """Voice-call every configured recipient; same body as /api/send-sms."""
        await dispatcher.initiate_call(payload)
        return JSONResponse({"success": True})

    @app.get("/api/health")
    @app.get("/health", include_in_schema=False)
    def health(dispatcher: AlertDispatcher = Depends(get_dispatcher)) -> JSONResponse:
        return JSONResponse(
            {
                "status": "Server is running",
                "timestamp": datetime.now(UTC).isoformat(),
                "twilioInitialized": dispatcher.client_initialized,
            }
        )

    # Mounted last: "/" would otherwise shadow the API routes.
    if settings.public_dir is not None and settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app


def run() -> None:
    """Console entry point: validate config, then serve with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        app = create_app(settings)
    except StartupConfigError as exc:
        logger.error("%s", exc.message)
        sys.exit(1)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
