"""FastAPI application wiring the store, OAuth flow and Drive client."""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from drive_bridge.api.routes import router
from drive_bridge.config import Settings, load_settings
from drive_bridge.drive import DriveClient
from drive_bridge.drive.client import build_drive_service
from drive_bridge.exceptions import DriveBridgeError
from drive_bridge.google import OAuthFlow, TokenManager
from drive_bridge.google.oauth import create_session
from drive_bridge.store import CredentialStore

logger = logging.getLogger(__name__)


async def drive_bridge_error_handler(request: Request, exc: DriveBridgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        {"success": False, "code": exc.code, "message": exc.message},
        status_code=exc.status_code,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query")]
        message = f"Invalid {'.'.join(location) or 'request'}: {first.get('msg', 'invalid value')}"
    return JSONResponse(
        {"success": False, "code": "invalid_request", "message": message},
        status_code=400,
    )


def create_app(
    settings: Settings | None = None,
    store: CredentialStore | None = None,
    session_factory: Callable[..., Any] = create_session,
    service_factory: Callable[..., Any] = build_drive_service,
) -> FastAPI:
    """Create the drive-bridge app.

    Args:
        settings: Settings to use. Defaults to load_settings().
        store: Credential store. Defaults to one at settings.options_file.
        session_factory: Builds Authlib sessions for token calls.
        service_factory: Builds Drive services for file calls.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or load_settings()
    store = store or CredentialStore(settings.options_file)
    tokens = TokenManager(
        store, session_factory=session_factory, http_timeout=settings.http_timeout
    )

    app = FastAPI(title="drive-bridge")
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens
    app.state.oauth = OAuthFlow(store, settings, session_factory=session_factory)
    app.state.drive = DriveClient(
        store, tokens, http_timeout=settings.http_timeout, service_factory=service_factory
    )

    app.add_exception_handler(DriveBridgeError, drive_bridge_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.include_router(router)

    logger.info(f"drive-bridge ready, redirect URI {settings.redirect_uri}")
    return app
