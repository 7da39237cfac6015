"""Tests for the Drive operations facade."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpMockSequence, MediaIoBaseUpload

from drive_bridge.drive import DriveClient, DriveClientContext
from drive_bridge.drive.client import (
    FOLDER_MIME_TYPE,
    GOOGLE_SHEET_MIME_TYPE,
    LIST_FIELDS,
    MAX_UPLOAD_BYTES,
    sanitize_file_name,
)
from drive_bridge.exceptions import (
    NotFound,
    PayloadTooLarge,
    RemoteApiError,
    Unauthenticated,
    ValidationError,
)
from drive_bridge.google import TokenManager


def http_error(status: int, message: str) -> HttpError:
    content = f'{{"error": {{"code": {status}, "message": "{message}"}}}}'.encode()
    return HttpError(httplib2.Response({"status": status}), content)


@pytest.fixture
def service():
    """Stand-in for a googleapiclient Drive v3 resource."""
    return MagicMock()


@pytest.fixture
def service_factory(service):
    return MagicMock(return_value=service)


@pytest.fixture
def files(service):
    return service.files.return_value


@pytest.fixture
def client(configured_store, valid_token, session_factory, service_factory, now):
    configured_store.save_token_set(valid_token)
    tokens = TokenManager(configured_store, session_factory=session_factory, clock=lambda: now)
    return DriveClient(configured_store, tokens, http_timeout=5.0, service_factory=service_factory)


class TestUnauthenticated:
    """Operations without a usable token."""

    @pytest.fixture
    def bare_client(self, store, session_factory, service_factory, now):
        tokens = TokenManager(store, session_factory=session_factory, clock=lambda: now)
        return DriveClient(store, tokens, service_factory=service_factory)

    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.list_files(),
            lambda c: c.upload_file("a.txt", "text/plain", b"hi"),
            lambda c: c.download_file("file-id"),
            lambda c: c.create_folder("Reports"),
        ],
    )
    def test_no_network_call(self, bare_client, service_factory, session_factory, call):
        """Should raise Unauthenticated before any remote call."""
        with pytest.raises(Unauthenticated):
            call(bare_client)

        service_factory.assert_not_called()
        session_factory.assert_not_called()

    def test_failed_refresh(
        self, configured_store, expired_token, session, session_factory, service_factory, now
    ):
        """Should raise Unauthenticated when the refresh is rejected."""
        configured_store.save_token_set(expired_token)
        session.refresh_token.return_value = {"error": "invalid_grant"}
        tokens = TokenManager(configured_store, session_factory=session_factory, clock=lambda: now)
        client = DriveClient(configured_store, tokens, service_factory=service_factory)

        with pytest.raises(Unauthenticated):
            client.list_files()
        service_factory.assert_not_called()


class TestContext:
    """Per-request service context."""

    def test_service_built_with_current_token(self, client, files, service_factory):
        """Should hand the stored token and timeout to the service factory."""
        files.list.return_value.execute.return_value = {"files": []}
        client.list_files()

        context = service_factory.call_args[0][0]
        assert isinstance(context, DriveClientContext)
        assert context.token_set.access_token == "test-access-token"
        assert context.credentials.client_secret == "test-client-secret"
        assert context.http_timeout == 5.0

    def test_refreshed_token_used(
        self, configured_store, expired_token, session, session_factory, service, service_factory, now
    ):
        """Should build the service from the freshly refreshed token."""
        configured_store.save_token_set(expired_token)
        session.refresh_token.return_value = {"access_token": "new-access-token", "expires_in": 3600}
        tokens = TokenManager(configured_store, session_factory=session_factory, clock=lambda: now)
        client = DriveClient(configured_store, tokens, service_factory=service_factory)
        service.files.return_value.list.return_value.execute.return_value = {"files": []}

        client.list_files()

        assert service_factory.call_args[0][0].token_set.access_token == "new-access-token"

    def test_context_requires_token(self, store):
        """Should raise Unauthenticated when no token is stored."""
        with pytest.raises(Unauthenticated):
            DriveClientContext.from_store(store)


class TestListFiles:
    """File listing."""

    def test_defaults(self, client, files):
        """Should default to 20 non-trashed files without a page token."""
        files.list.return_value.execute.return_value = {"files": []}

        listing = client.list_files()

        files.list.assert_called_once_with(pageSize=20, q="trashed=false", fields=LIST_FIELDS)
        assert listing.files == []
        assert listing.next_page_token is None

    @pytest.mark.parametrize(
        ("page_size", "expected"), [(0, 20), (-5, 20), (None, 20), (50, 50), (5000, 1000)]
    )
    def test_page_size_clamped(self, client, files, page_size, expected):
        """Should clamp the page size to a positive value."""
        files.list.return_value.execute.return_value = {"files": []}

        client.list_files(page_size=page_size)

        assert files.list.call_args.kwargs["pageSize"] == expected

    def test_pagination_and_query(self, client, files):
        """Should pass the page token and query through."""
        files.list.return_value.execute.return_value = {"files": [], "nextPageToken": "page-3"}

        listing = client.list_files(page_token="page-2", query="name contains 'report'")

        kwargs = files.list.call_args.kwargs
        assert kwargs["pageToken"] == "page-2"
        assert kwargs["q"] == "name contains 'report'"
        assert listing.next_page_token == "page-3"

    def test_empty_query_uses_default(self, client, files):
        """Should fall back to trashed=false for an empty query."""
        files.list.return_value.execute.return_value = {"files": []}

        client.list_files(query="")

        assert files.list.call_args.kwargs["q"] == "trashed=false"

    def test_parses_files(self, client, files):
        """Should map Drive fields onto DriveFile."""
        files.list.return_value.execute.return_value = {
            "files": [
                {
                    "id": "f1",
                    "name": "report.pdf",
                    "mimeType": "application/pdf",
                    "size": "2048",
                    "modifiedTime": "2025-03-01T10:00:00.000Z",
                    "webViewLink": "https://drive.google.com/file/d/f1/view",
                },
                {"id": "d1", "name": "Reports", "mimeType": FOLDER_MIME_TYPE},
            ]
        }

        listing = client.list_files()

        report, folder = listing.files
        assert report.size == 2048
        assert report.modified_time == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert report.to_api()["webViewLink"] == "https://drive.google.com/file/d/f1/view"
        assert report.is_folder is False
        assert folder.size is None
        assert folder.is_folder is True

    def test_remote_error(self, client, files):
        """Should surface provider errors as RemoteApiError with the message."""
        files.list.return_value.execute.side_effect = http_error(403, "Rate limit exceeded")

        with pytest.raises(RemoteApiError, match="Rate limit exceeded"):
            client.list_files()

    def test_transport_error(self, client, files):
        """Should surface timeouts as RemoteApiError."""
        files.list.return_value.execute.side_effect = TimeoutError("timed out")

        with pytest.raises(RemoteApiError, match="timed out"):
            client.list_files()


class TestUploadFile:
    """File upload."""

    @pytest.fixture(autouse=True)
    def _created(self, files):
        files.create.return_value.execute.return_value = {
            "id": "new-id",
            "name": "notes.txt",
            "mimeType": "text/plain",
            "size": "5",
            "webViewLink": "https://drive.google.com/file/d/new-id/view",
        }

    def test_upload(self, client, files):
        """Should create the file with metadata and content in one call."""
        result = client.upload_file("notes.txt", "text/plain", b"hello", folder_id="parent-1")

        kwargs = files.create.call_args.kwargs
        assert kwargs["body"] == {"name": "notes.txt", "parents": ["parent-1"]}
        assert isinstance(kwargs["media_body"], MediaIoBaseUpload)
        assert kwargs["media_body"].mimetype() == "text/plain"
        assert kwargs["media_body"].resumable() is False
        assert result.id == "new-id"
        assert result.size == 5

    def test_exactly_limit_succeeds(self, client, files):
        """Should accept content of exactly 10 MiB."""
        client.upload_file("big.bin", "application/octet-stream", b"\0" * MAX_UPLOAD_BYTES)
        files.create.assert_called_once()

    def test_over_limit_rejected(self, client, service_factory):
        """Should raise PayloadTooLarge for 10 MiB + 1 without a remote call."""
        with pytest.raises(PayloadTooLarge):
            client.upload_file("big.bin", "application/octet-stream", b"\0" * (MAX_UPLOAD_BYTES + 1))
        service_factory.assert_not_called()

    def test_name_sanitized(self, client, files):
        """Should send only the base name without control characters."""
        client.upload_file("../../etc/pass\x00wd\n.txt", "text/plain", b"x")

        assert files.create.call_args.kwargs["body"]["name"] == "passwd.txt"

    def test_empty_name(self, client, service_factory):
        """Should raise ValidationError for a name that sanitizes to nothing."""
        with pytest.raises(ValidationError):
            client.upload_file("a/b/", "text/plain", b"x")
        service_factory.assert_not_called()

    def test_mime_type_guessed(self, client, files):
        """Should guess the MIME type from the name when none is given."""
        client.upload_file("notes.txt", "", b"x")
        assert files.create.call_args.kwargs["media_body"].mimetype() == "text/plain"

    def test_mime_type_fallback(self, client, files):
        """Should use application/octet-stream for unknown extensions."""
        client.upload_file("blob.unknownext", None, b"x")
        assert files.create.call_args.kwargs["media_body"].mimetype() == "application/octet-stream"


class TestDownloadFile:
    """File download."""

    def test_download(self, client, files):
        """Should return content with name, type and size together."""
        files.get.return_value.execute.return_value = {
            "id": "f1",
            "name": "report.pdf",
            "mimeType": "application/pdf",
            "size": "4",
        }
        files.get_media.return_value.execute.return_value = b"%PDF"

        downloaded = client.download_file("f1")

        files.get.assert_called_once_with(fileId="f1", fields="id,name,mimeType,size")
        files.get_media.assert_called_once_with(fileId="f1")
        assert downloaded.content == b"%PDF"
        assert downloaded.filename == "report.pdf"
        assert downloaded.mime_type == "application/pdf"
        assert downloaded.size == 4

    def test_unknown_id(self, client, files):
        """Should raise NotFound when Drive reports 404."""
        files.get.return_value.execute.side_effect = http_error(404, "File not found: nope.")

        with pytest.raises(NotFound, match="File not found"):
            client.download_file("nope")
        files.get_media.assert_not_called()

    def test_empty_id(self, client, service_factory):
        """Should raise ValidationError without a remote call."""
        with pytest.raises(ValidationError):
            client.download_file("")
        service_factory.assert_not_called()

    def test_google_sheet_exported(self, client, files):
        """Should export Google Sheets as CSV."""
        files.get.return_value.execute.return_value = {
            "id": "s1",
            "name": "Budget",
            "mimeType": GOOGLE_SHEET_MIME_TYPE,
        }
        files.export_media.return_value.execute.return_value = b"a,b\n1,2\n"

        downloaded = client.download_file("s1")

        files.export_media.assert_called_once_with(fileId="s1", mimeType="text/csv")
        assert downloaded.filename == "Budget.csv"
        assert downloaded.mime_type == "text/csv"
        assert downloaded.size == 8

    def test_folder_rejected(self, client, files):
        """Should refuse to download a folder."""
        files.get.return_value.execute.return_value = {
            "id": "d1",
            "name": "Reports",
            "mimeType": FOLDER_MIME_TYPE,
        }

        with pytest.raises(ValidationError, match="Folders"):
            client.download_file("d1")

    def test_content_error(self, client, files):
        """Should surface content read failures as RemoteApiError."""
        files.get.return_value.execute.return_value = {"id": "f1", "name": "a", "mimeType": "text/plain"}
        files.get_media.return_value.execute.side_effect = http_error(500, "Backend Error")

        with pytest.raises(RemoteApiError, match="Backend Error"):
            client.download_file("f1")


class TestCreateFolder:
    """Folder creation."""

    def test_create(self, client, files):
        """Should create a file resource with the folder MIME type."""
        files.create.return_value.execute.return_value = {
            "id": "d1",
            "name": "Reports",
            "mimeType": FOLDER_MIME_TYPE,
            "webViewLink": "https://drive.google.com/drive/folders/d1",
        }

        folder = client.create_folder("  Reports ", parent_id="root-1")

        files.create.assert_called_once_with(
            body={"name": "Reports", "mimeType": FOLDER_MIME_TYPE, "parents": ["root-1"]},
            fields="id,name,mimeType,webViewLink",
        )
        assert folder.is_folder is True

    def test_empty_name(self, client, service_factory):
        """Should raise ValidationError without a remote call."""
        with pytest.raises(ValidationError, match="Folder name"):
            client.create_folder("   ")
        service_factory.assert_not_called()


class TestSanitizeFileName:
    """File name sanitizing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("report.pdf", "report.pdf"),
            ("C:\\Users\\me\\report.pdf", "report.pdf"),
            ("/tmp/x/report.pdf", "report.pdf"),
            ("  spaced name.txt ", "spaced name.txt"),
            ("tab\there.txt", "tabhere.txt"),
            ("", ""),
        ],
    )
    def test_sanitize(self, raw, expected):
        """Should keep the base name and drop control characters."""
        assert sanitize_file_name(raw) == expected


class TestMalformedResponse:
    """Non-JSON bodies from a real Drive service."""

    @pytest.fixture
    def gateway_client(self, configured_store, valid_token, session_factory, now):
        configured_store.save_token_set(valid_token)
        tokens = TokenManager(configured_store, session_factory=session_factory, clock=lambda: now)
        http = HttpMockSequence([({"status": "200"}, b"<html>gateway</html>")])

        def service_factory(context):
            return build("drive", "v3", http=http, static_discovery=True, cache_discovery=False)

        return DriveClient(configured_store, tokens, service_factory=service_factory)

    def test_list_html_body(self, gateway_client):
        """Should raise RemoteApiError when a listing is not JSON."""
        with pytest.raises(RemoteApiError, match="Malformed Drive response"):
            gateway_client.list_files()

    def test_create_folder_html_body(self, gateway_client):
        """Should raise RemoteApiError when folder creation is not JSON."""
        with pytest.raises(RemoteApiError, match="Malformed Drive response"):
            gateway_client.create_folder("Reports")

    def test_media_bytes_accepted(self, client, files):
        """Should keep raw bytes from media downloads."""
        files.get.return_value.execute.return_value = {"id": "f1", "name": "a", "mimeType": "text/plain"}
        files.get_media.return_value.execute.return_value = b"<html>not json</html>"

        assert client.download_file("f1").content == b"<html>not json</html>"
