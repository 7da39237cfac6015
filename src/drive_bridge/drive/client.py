"""Google Drive API facade.

Every operation checks the token lifecycle first and translates Google
client failures into drive-bridge errors, so nothing from the underlying
libraries escapes to callers.
"""

from __future__ import annotations

import contextlib
import io
import logging
import mimetypes
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials as GoogleCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from drive_bridge.exceptions import (
    NotFound,
    PayloadTooLarge,
    RemoteApiError,
    Unauthenticated,
    ValidationError,
)
from drive_bridge.google.tokens import TokenManager
from drive_bridge.store import CredentialStore, OAuthClientCredentials, TokenSet

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"
GOOGLE_SHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
GOOGLE_SLIDES_MIME_TYPE = "application/vnd.google-apps.presentation"
GOOGLE_APPS_PREFIX = "application/vnd.google-apps."

EXPORT_MIME_TYPES = {
    GOOGLE_DOC_MIME_TYPE: "application/pdf",
    GOOGLE_SHEET_MIME_TYPE: "text/csv",
    GOOGLE_SLIDES_MIME_TYPE: "application/pdf",
}
EXPORT_EXTENSIONS = {"application/pdf": ".pdf", "text/csv": ".csv"}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 1000
DEFAULT_QUERY = "trashed=false"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

LIST_FIELDS = "files(id,name,mimeType,size,modifiedTime,webViewLink),nextPageToken"
FILE_FIELDS = "id,name,mimeType,size,webViewLink"
FOLDER_FIELDS = "id,name,mimeType,webViewLink"
METADATA_FIELDS = "id,name,mimeType,size"

_UNSAFE_NAME_CHARS = re.compile(r"[\x00-\x1f\x7f/\\]")


@dataclass
class DriveFile:
    """Represents a Google Drive file."""

    id: str
    name: str
    mime_type: str
    size: int | None = None
    modified_time: datetime | None = None
    web_view_link: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    def to_api(self) -> dict[str, Any]:
        """Serialise with Drive's camelCase field names."""
        return {
            "id": self.id,
            "name": self.name,
            "mimeType": self.mime_type,
            "size": self.size,
            "modifiedTime": self.modified_time.isoformat() if self.modified_time else None,
            "webViewLink": self.web_view_link,
        }


@dataclass
class FileListing:
    """One page of a file listing."""

    files: list[DriveFile] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass
class DownloadedFile:
    """File content together with the metadata it was read under."""

    content: bytes
    filename: str
    mime_type: str
    size: int


@dataclass(frozen=True)
class DriveClientContext:
    """Credentials and token captured for a single request."""

    credentials: OAuthClientCredentials
    token_set: TokenSet
    http_timeout: float = 30.0

    @classmethod
    def from_store(cls, store: CredentialStore, http_timeout: float = 30.0) -> DriveClientContext:
        token_set = store.get_token_set()
        if token_set is None:
            raise Unauthenticated()
        return cls(
            credentials=store.get_credentials(),
            token_set=token_set,
            http_timeout=http_timeout,
        )


def build_drive_service(context: DriveClientContext) -> Any:
    """Build a Drive v3 service bound to the context's access token."""
    # No refresh token here: refreshing belongs to TokenManager
    creds = GoogleCredentials(token=context.token_set.access_token)
    http = google_auth_httplib2.AuthorizedHttp(
        creds, http=httplib2.Http(timeout=context.http_timeout)
    )
    return build("drive", "v3", http=http, cache_discovery=False)


def sanitize_file_name(name: str) -> str:
    """Strip directories, path separators and control characters from a name."""
    name = (name or "").replace("\\", "/").rsplit("/", 1)[-1]
    return _UNSAFE_NAME_CHARS.sub("", name).strip()


def clamp_page_size(page_size: int | None) -> int:
    if page_size is None or page_size <= 0:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)


class DriveClient:
    """Google Drive operations for the connected account.

    Usage:
        client = DriveClient(store, TokenManager(store))

        # List files
        listing = client.list_files(page_size=50)

        # Upload bytes
        file = client.upload_file("report.pdf", "application/pdf", data)

        # Download a file
        downloaded = client.download_file(file.id)

        # Create a folder
        folder = client.create_folder("Reports")

    Note:
        Requires OAuth authorization through OAuthFlow first; otherwise every
        operation raises Unauthenticated without calling Google.
    """

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenManager,
        http_timeout: float = 30.0,
        service_factory: Callable[[DriveClientContext], Any] = build_drive_service,
    ) -> None:
        """Initialize Drive client.

        Args:
            store: Credential store holding the client credentials and token.
            tokens: Token lifecycle manager consulted before every call.
            http_timeout: Socket timeout for Drive requests, in seconds.
            service_factory: Builds the Drive service for a request context.
        """
        self.store = store
        self.tokens = tokens
        self._http_timeout = http_timeout
        self._service_factory = service_factory

    def _get_service(self) -> Any:
        """Ensure a usable token and build a service for this call."""
        if not self.tokens.ensure_usable_token():
            raise Unauthenticated()

        context = DriveClientContext.from_store(self.store, self._http_timeout)
        try:
            return self._service_factory(context)
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            logger.error(f"Failed to build Drive service: {e}")
            raise RemoteApiError(str(e)) from e

    def _execute(self, request: Any, action: str, media: bool = False) -> Any:
        """Run a Drive request, translating client failures.

        Metadata requests must answer with a JSON object; media requests
        return raw bytes.
        """
        try:
            result = request.execute(num_retries=0)
        except HttpError as e:
            status = e.resp.status
            message = e.reason or str(e)
            if status == 404:
                raise NotFound(message) from e
            logger.error(f"Drive {action} failed ({status}): {message}")
            raise RemoteApiError(message) from e
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            logger.error(f"Drive {action} failed: {e}")
            raise RemoteApiError(str(e)) from e

        if not media and not isinstance(result, dict):
            logger.error(f"Drive {action} returned a non-JSON body")
            raise RemoteApiError("Malformed Drive response")
        return result

    # =========================================================================
    # Files
    # =========================================================================

    def list_files(
        self,
        page_size: int | None = DEFAULT_PAGE_SIZE,
        page_token: str | None = None,
        query: str | None = DEFAULT_QUERY,
    ) -> FileListing:
        """List files in Drive.

        Args:
            page_size: Files per page; non-positive or missing means 20.
            page_token: Token from a previous page, passed through as-is.
            query: Drive query syntax; empty means "trashed=false".

        Returns:
            FileListing with the page's files and the next page token.
        """
        service = self._get_service()

        kwargs: dict[str, Any] = {
            "pageSize": clamp_page_size(page_size),
            "q": query or DEFAULT_QUERY,
            "fields": LIST_FIELDS,
        }
        if page_token:
            kwargs["pageToken"] = page_token

        results = self._execute(service.files().list(**kwargs), "list")

        return FileListing(
            files=[self._parse_file(item) for item in results.get("files", [])],
            next_page_token=results.get("nextPageToken"),
        )

    def upload_file(
        self,
        name: str,
        mime_type: str | None,
        content: bytes,
        folder_id: str | None = None,
    ) -> DriveFile:
        """Upload bytes to Drive as a new file.

        Args:
            name: File name; directories and control characters are stripped.
            mime_type: MIME type, guessed from the name when empty.
            content: File content, at most 10 MiB.
            folder_id: Parent folder ID (optional).

        Returns:
            Created DriveFile.

        Raises:
            PayloadTooLarge: If content exceeds 10 MiB.
            ValidationError: If the sanitized name is empty.
        """
        if len(content) > MAX_UPLOAD_BYTES:
            raise PayloadTooLarge(len(content), MAX_UPLOAD_BYTES)

        safe_name = sanitize_file_name(name)
        if not safe_name:
            raise ValidationError("File name is required")

        if not mime_type:
            mime_type, _ = mimetypes.guess_type(safe_name)
            if mime_type is None:
                mime_type = "application/octet-stream"

        service = self._get_service()

        metadata: dict[str, Any] = {"name": safe_name}
        if folder_id:
            metadata["parents"] = [folder_id]

        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        result = self._execute(
            service.files().create(body=metadata, media_body=media, fields=FILE_FIELDS),
            "upload",
        )
        logger.info(f"Uploaded {safe_name} ({len(content)} bytes) as {result.get('id')}")
        return self._parse_file(result)

    def download_file(self, file_id: str) -> DownloadedFile:
        """Download a file's content with its metadata.

        Google Docs, Sheets and Slides have no raw content and are exported
        (PDF, CSV and PDF respectively).

        Args:
            file_id: Drive file ID.

        Returns:
            DownloadedFile with content, name, MIME type and size.

        Raises:
            NotFound: If Drive does not know the file ID.
            ValidationError: If the ID is empty or names a folder.
        """
        file_id = (file_id or "").strip()
        if not file_id:
            raise ValidationError("File ID is required")

        service = self._get_service()
        files = service.files()

        meta = self._execute(files.get(fileId=file_id, fields=METADATA_FIELDS), "metadata")
        mime_type = meta.get("mimeType", "")
        filename = meta.get("name", "")

        if mime_type == FOLDER_MIME_TYPE:
            raise ValidationError("Folders cannot be downloaded")

        if mime_type.startswith(GOOGLE_APPS_PREFIX):
            export_mime = EXPORT_MIME_TYPES.get(mime_type, "application/pdf")
            content = self._execute(
                files.export_media(fileId=file_id, mimeType=export_mime), "export", media=True
            )
            return DownloadedFile(
                content=content,
                filename=filename + EXPORT_EXTENSIONS.get(export_mime, ""),
                mime_type=export_mime,
                size=len(content),
            )

        content = self._execute(files.get_media(fileId=file_id), "download", media=True)

        size = len(content)
        if meta.get("size"):
            with contextlib.suppress(ValueError):
                size = int(meta["size"])

        return DownloadedFile(content=content, filename=filename, mime_type=mime_type, size=size)

    # =========================================================================
    # Folders
    # =========================================================================

    def create_folder(self, name: str, parent_id: str | None = None) -> DriveFile:
        """Create a new folder.

        Args:
            name: Folder name.
            parent_id: Parent folder ID (optional).

        Returns:
            Created folder as DriveFile.

        Raises:
            ValidationError: If the name is empty.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required")

        service = self._get_service()

        metadata: dict[str, Any] = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE,
        }
        if parent_id:
            metadata["parents"] = [parent_id]

        result = self._execute(
            service.files().create(body=metadata, fields=FOLDER_FIELDS), "create folder"
        )
        logger.info(f"Created folder {name} as {result.get('id')}")
        return self._parse_file(result)

    def _parse_file(self, data: dict) -> DriveFile:
        """Parse file from API response."""
        modified_time = None
        if data.get("modifiedTime"):
            with contextlib.suppress(ValueError):
                modified_time = datetime.fromisoformat(data["modifiedTime"].replace("Z", "+00:00"))

        size = None
        if data.get("size"):
            with contextlib.suppress(ValueError):
                size = int(data["size"])

        return DriveFile(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            size=size,
            modified_time=modified_time,
            web_view_link=data.get("webViewLink"),
        )
