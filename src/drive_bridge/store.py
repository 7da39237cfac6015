"""Credential store backed by a JSON options file.

The options file holds one slot per concern:
    client_credentials - {"client_id": ..., "client_secret": ...}
    token              - the current TokenSet, written as a single record
    oauth_state        - state value of the pending authorization request

The store never talks to the network.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from drive_bridge.exceptions import ValidationError

logger = logging.getLogger(__name__)

CREDENTIALS_KEY = "client_credentials"
TOKEN_KEY = "token"
STATE_KEY = "oauth_state"


@dataclass(frozen=True)
class OAuthClientCredentials:
    """OAuth client id/secret pair. Empty strings when unset."""

    client_id: str = ""
    client_secret: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class TokenSet:
    """Access/refresh token pair with its absolute expiry (epoch seconds)."""

    access_token: str
    expires_at: float
    refresh_token: str | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenSet:
        return cls(
            access_token=data["access_token"],
            expires_at=float(data.get("expires_at") or 0),
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )


class CredentialStore:
    """Persists OAuth client credentials and the single active TokenSet.

    Example:
        >>> store = CredentialStore("data/options.json")
        >>> store.save_credentials("id.apps.googleusercontent.com", "secret")
        True
        >>> store.get_token_set() is None
        True
    """

    def __init__(self, path: str | Path):
        """Initialize the store.

        Args:
            path: Options file location. Created on first write.
        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        with open(self.path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid options file format: {self.path}")
        return data

    def _write(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value

            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
            tmp_path.replace(self.path)

    # =========================================================================
    # Client credentials
    # =========================================================================

    def get_credentials(self) -> OAuthClientCredentials:
        creds = self._read().get(CREDENTIALS_KEY) or {}
        return OAuthClientCredentials(
            client_id=creds.get("client_id", ""),
            client_secret=creds.get("client_secret", ""),
        )

    def save_credentials(self, client_id: str, client_secret: str) -> bool:
        """Save OAuth client credentials.

        Args:
            client_id: OAuth client ID.
            client_secret: OAuth client secret.

        Returns:
            True once written.

        Raises:
            ValidationError: If either value is empty after trimming.
        """
        client_id = (client_id or "").strip()
        client_secret = (client_secret or "").strip()

        if not client_id or not client_secret:
            raise ValidationError("Client ID and Client Secret are required")

        self._write(CREDENTIALS_KEY, {"client_id": client_id, "client_secret": client_secret})
        logger.info("OAuth client credentials saved")
        return True

    # =========================================================================
    # Tokens
    # =========================================================================

    def get_token_set(self) -> TokenSet | None:
        data = self._read().get(TOKEN_KEY)
        if not data or not data.get("access_token"):
            return None
        return TokenSet.from_dict(data)

    def save_token_set(self, token_set: TokenSet) -> None:
        self._write(TOKEN_KEY, asdict(token_set))
        logger.info(f"Token saved, expires at {token_set.expires_at:.0f}")

    def clear_token_set(self) -> None:
        """Remove the stored token. Only called on explicit revoke."""
        self._write(TOKEN_KEY, None)
        logger.info("Token cleared")

    def get_token_expiry(self) -> float:
        token_set = self.get_token_set()
        return token_set.expires_at if token_set else 0.0

    def get_auth_status(self) -> bool:
        """Check whether a token is present and usable or refreshable.

        Returns:
            True if the stored token is unexpired, or expired with a refresh token.
        """
        token_set = self.get_token_set()
        if token_set is None:
            return False
        if token_set.is_expired():
            return bool(token_set.refresh_token)
        return True

    # =========================================================================
    # Authorization state
    # =========================================================================

    def save_oauth_state(self, state: str | None) -> None:
        self._write(STATE_KEY, state)

    def get_oauth_state(self) -> str | None:
        return self._read().get(STATE_KEY)
