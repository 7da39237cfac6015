"""Drive endpoints: credentials, OAuth flow and file operations."""

import base64
import html
import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from drive_bridge.drive import DriveClient
from drive_bridge.drive.client import MAX_UPLOAD_BYTES
from drive_bridge.exceptions import AuthError, DriveBridgeError, Forbidden, ValidationError
from drive_bridge.google import OAuthFlow
from drive_bridge.store import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drive", tags=["drive"])


def require_admin(request: Request, x_admin_token: str | None = Header(default=None)) -> None:
    """Allow the request only with the configured admin token."""
    expected = request.app.state.settings.admin_token
    if not expected or not x_admin_token:
        raise Forbidden()
    if not secrets.compare_digest(x_admin_token.encode(), expected.encode()):
        raise Forbidden()


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_oauth(request: Request) -> OAuthFlow:
    return request.app.state.oauth


def get_drive(request: Request) -> DriveClient:
    return request.app.state.drive


async def _request_params(request: Request) -> dict[str, Any]:
    """Read parameters from a JSON or form body, falling back to the query."""
    params: dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise ValidationError("Invalid JSON body") from e
        if isinstance(body, dict):
            params.update(body)
    elif content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})

    return params


def _page_size(raw: str | None) -> int | None:
    """Parse page_size leniently; anything unparseable falls back to the default."""
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


def _failure_page(message: str, status_code: int = 400) -> HTMLResponse:
    body = (
        "<!DOCTYPE html><html><head><title>Google Drive authorization</title></head>"
        f"<body><h1>Google Drive authorization failed</h1><p>{html.escape(message)}</p>"
        "</body></html>"
    )
    return HTMLResponse(body, status_code=status_code)


# =============================================================================
# Setup and OAuth
# =============================================================================


@router.post("/save-credentials", dependencies=[Depends(require_admin)])
async def save_credentials(
    request: Request, store: CredentialStore = Depends(get_store)
) -> dict[str, Any]:
    params = await _request_params(request)
    await run_in_threadpool(
        store.save_credentials,
        str(params.get("client_id") or ""),
        str(params.get("client_secret") or ""),
    )
    return {"success": True, "message": "Credentials saved successfully"}


@router.post("/auth", dependencies=[Depends(require_admin)])
def start_auth(oauth: OAuthFlow = Depends(get_oauth)) -> dict[str, Any]:
    return {"success": True, "auth_url": oauth.build_authorization_url()}


@router.get("/callback", response_model=None)
def handle_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oauth: OAuthFlow = Depends(get_oauth),
) -> RedirectResponse | HTMLResponse:
    """OAuth redirect target. Answers with a redirect or an HTML page, never JSON."""
    try:
        if error:
            oauth.handle_provider_error(error)
        oauth.exchange_code(code or "", state=state)
    except AuthError as e:
        logger.warning(f"OAuth callback failed: {e.reason}")
        return _failure_page(str(e))
    except DriveBridgeError as e:
        logger.warning(f"OAuth callback failed: {e.message}")
        return _failure_page(e.message, status_code=e.status_code)

    admin_url = request.app.state.settings.admin_page_url
    separator = "&" if "?" in admin_url else "?"
    return RedirectResponse(f"{admin_url}{separator}auth=success", status_code=302)


@router.get("/status", dependencies=[Depends(require_admin)])
def auth_status(request: Request, store: CredentialStore = Depends(get_store)) -> dict[str, Any]:
    return {
        "success": True,
        "has_credentials": store.get_credentials().is_configured,
        "authenticated": store.get_auth_status(),
        "redirect_uri": request.app.state.settings.redirect_uri,
    }


@router.post("/revoke", dependencies=[Depends(require_admin)])
def revoke(oauth: OAuthFlow = Depends(get_oauth)) -> dict[str, Any]:
    oauth.revoke()
    return {"success": True, "message": "Google Drive disconnected"}


# =============================================================================
# Files
# =============================================================================


@router.get("/files", dependencies=[Depends(require_admin)])
def list_files(
    page_size: str | None = Query(default=None),
    page_token: str | None = None,
    query: str | None = None,
    drive: DriveClient = Depends(get_drive),
) -> dict[str, Any]:
    listing = drive.list_files(page_size=_page_size(page_size), page_token=page_token, query=query)
    return {
        "success": True,
        "files": [f.to_api() for f in listing.files],
        "next_page_token": listing.next_page_token,
    }


@router.post("/upload", dependencies=[Depends(require_admin)])
def upload_file(
    file: UploadFile | None = File(default=None),
    folder_id: str | None = Form(default=None),
    drive: DriveClient = Depends(get_drive),
) -> dict[str, Any]:
    if file is None:
        raise ValidationError("No file uploaded")

    # One byte past the limit is enough to reject the upload
    content = file.file.read(MAX_UPLOAD_BYTES + 1)
    result = drive.upload_file(file.filename or "", file.content_type, content, folder_id=folder_id)
    data = result.to_api()
    data.pop("modifiedTime")
    return {"success": True, "file": data}


@router.get("/download", dependencies=[Depends(require_admin)])
def download_file(
    file_id: str | None = None, drive: DriveClient = Depends(get_drive)
) -> dict[str, Any]:
    downloaded = drive.download_file(file_id or "")
    return {
        "success": True,
        "content": base64.b64encode(downloaded.content).decode("ascii"),
        "filename": downloaded.filename,
        "mimeType": downloaded.mime_type,
        "size": downloaded.size,
    }


@router.post("/create-folder", dependencies=[Depends(require_admin)])
async def create_folder(request: Request, drive: DriveClient = Depends(get_drive)) -> dict[str, Any]:
    params = await _request_params(request)
    folder = await run_in_threadpool(
        drive.create_folder, str(params.get("name") or ""), params.get("parent_id") or None
    )
    data = folder.to_api()
    data.pop("size")
    data.pop("modifiedTime")
    return {"success": True, "folder": data}
