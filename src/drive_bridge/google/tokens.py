"""Access token lifecycle: usability checks and refresh-on-demand."""

import logging
import threading
import time
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

import requests
from authlib.common.errors import AuthlibBaseError

from drive_bridge.google.oauth import (
    TOKEN_URL,
    SessionFactory,
    create_session,
    describe_oauth_error,
    token_set_from_response,
)
from drive_bridge.store import CredentialStore, TokenSet

logger = logging.getLogger(__name__)

# One refresh lock per options file, i.e. per token slot
_refresh_locks: dict[Path, threading.Lock] = {}
_refresh_locks_guard = threading.Lock()


def _refresh_lock(path: Path) -> threading.Lock:
    key = path.resolve()
    with _refresh_locks_guard:
        if key not in _refresh_locks:
            _refresh_locks[key] = threading.Lock()
        return _refresh_locks[key]


class TokenManager:
    """Decides whether the stored access token is usable and refreshes it.

    Safe to call before every Drive operation: a still-valid token is a pure
    read, an expired one triggers exactly one refresh attempt.
    """

    def __init__(
        self,
        store: CredentialStore,
        session_factory: SessionFactory = create_session,
        clock: Callable[[], float] = time.time,
        http_timeout: float = 30.0,
    ):
        self.store = store
        self._session_factory = session_factory
        self._clock = clock
        self._http_timeout = http_timeout

    def ensure_usable_token(self) -> bool:
        """Make sure a non-expired access token is stored.

        Returns:
            True if a usable token is stored (possibly after a refresh),
            False if credentials or tokens are missing or refresh failed.
        """
        if not self.store.get_credentials().is_configured:
            return False

        token_set = self.store.get_token_set()
        if token_set is None:
            return False

        if not token_set.is_expired(self._clock()):
            return True

        if not token_set.refresh_token:
            logger.info("Token expired and no refresh token stored")
            return False

        with _refresh_lock(self.store.path):
            # Another request may have refreshed while we waited
            current = self.store.get_token_set()
            if current is not None and not current.is_expired(self._clock()):
                return True
            return self._refresh(current or token_set)

    def _refresh(self, token_set: TokenSet) -> bool:
        logger.info("Token expired, refreshing...")
        credentials = self.store.get_credentials()
        session = self._session_factory(credentials)

        try:
            response = session.refresh_token(
                TOKEN_URL,
                refresh_token=token_set.refresh_token,
                timeout=self._http_timeout,
            )
            if "error" in response:
                logger.warning(f"Failed to refresh token: {response['error']}")
                return False
            new_token_set = token_set_from_response(
                response, self._clock(), previous_refresh_token=token_set.refresh_token
            )
        except AuthlibBaseError as e:
            logger.warning(f"Failed to refresh token: {describe_oauth_error(e)}")
            return False
        except requests.RequestException as e:
            logger.warning(f"Failed to refresh token: {e}")
            return False
        except ValueError as e:
            logger.warning(f"Invalid refresh response: {e}")
            return False

        self.store.save_token_set(new_token_set)
        return True

    def get_token_info(self) -> dict[str, Any]:
        """Get information about the current token.

        Returns:
            Dictionary with token status, expiry and refresh availability.
        """
        token_set = self.store.get_token_set()
        if token_set is None:
            return {"status": "no_token"}

        remaining = token_set.expires_at - self._clock()

        return {
            "status": "expired" if remaining <= 0 else "valid",
            "expires_in": str(timedelta(seconds=int(max(0, remaining)))),
            "has_refresh_token": bool(token_set.refresh_token),
            "scopes": (token_set.scope or "").split(),
        }
