"""Google OAuth flow, token lifecycle and error types."""

from drive_bridge.exceptions import (
    AuthError,
    DriveBridgeError,
    NotConfiguredError,
    NotFound,
    PayloadTooLarge,
    RemoteApiError,
    Unauthenticated,
    ValidationError,
)
from drive_bridge.google.oauth import OAuthFlow
from drive_bridge.google.tokens import TokenManager

__all__ = [
    "OAuthFlow",
    "TokenManager",
    "DriveBridgeError",
    "ValidationError",
    "NotConfiguredError",
    "Unauthenticated",
    "PayloadTooLarge",
    "NotFound",
    "RemoteApiError",
    "AuthError",
]
