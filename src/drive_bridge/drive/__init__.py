"""Google Drive operations for the connected account.

Usage:
    from drive_bridge.drive import DriveClient
    from drive_bridge.google import TokenManager
    from drive_bridge.store import CredentialStore

    store = CredentialStore("data/options.json")
    client = DriveClient(store, TokenManager(store))

    # List files
    listing = client.list_files()

    # Upload bytes
    file = client.upload_file("notes.txt", "text/plain", b"hello")

    # Download a file
    downloaded = client.download_file(file.id)

OAuth Setup:
    1. Save OAuth client credentials: drive-bridge credentials <id> <secret>
    2. Visit the URL from: drive-bridge auth-url
    3. Google redirects to /drive/callback, which stores the token
"""

from __future__ import annotations

from drive_bridge.drive.client import (
    DownloadedFile,
    DriveClient,
    DriveClientContext,
    DriveFile,
    FileListing,
)

__all__ = ["DriveClient", "DriveClientContext", "DriveFile", "DownloadedFile", "FileListing"]
