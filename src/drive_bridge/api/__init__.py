"""HTTP endpoints for the connected Google Drive account."""

from drive_bridge.api.app import create_app
from drive_bridge.api.routes import require_admin

__all__ = ["create_app", "require_admin"]
