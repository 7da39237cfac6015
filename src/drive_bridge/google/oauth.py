"""Google OAuth flow using Authlib.

This module drives the web-server OAuth 2.0 flow for the single connected
Drive account:
- Authorization URL creation (offline access, forced consent)
- Authorization code exchange and token persistence
- Provider-side denial handling
- Token revocation
"""

import logging
import time
from collections.abc import Callable
from typing import Any

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from drive_bridge.config import Settings
from drive_bridge.exceptions import AuthError, NotConfiguredError
from drive_bridge.store import CredentialStore, OAuthClientCredentials, TokenSet

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

DEFAULT_EXPIRES_IN = 3600

SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.readonly",
]

SessionFactory = Callable[..., Any]


def create_session(
    credentials: OAuthClientCredentials, redirect_uri: str | None = None
) -> OAuth2Session:
    """Create an Authlib session for the configured OAuth client."""
    return OAuth2Session(
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
        scope=" ".join(SCOPES),
        redirect_uri=redirect_uri,
        token_endpoint_auth_method="client_secret_post",
    )


def token_set_from_response(
    token: dict[str, Any], now: float, previous_refresh_token: str | None = None
) -> TokenSet:
    """Convert a token endpoint response to a TokenSet.

    Args:
        token: Parsed token endpoint response.
        now: Current epoch time; expiry is computed from it.
        previous_refresh_token: Kept when the response carries no refresh token.

    Returns:
        The new TokenSet.

    Raises:
        ValueError: If the response has no access token or a bad expires_in.
    """
    access_token = token.get("access_token")
    if not access_token:
        raise ValueError("Token response missing access_token")

    expires_in = token.get("expires_in") or DEFAULT_EXPIRES_IN

    return TokenSet(
        access_token=access_token,
        expires_at=now + int(expires_in),
        refresh_token=token.get("refresh_token") or previous_refresh_token,
        token_type=token.get("token_type", "Bearer"),
        scope=token.get("scope"),
    )


def describe_oauth_error(error: AuthlibBaseError) -> str:
    return error.description or error.error or str(error)


class OAuthFlow:
    """Google OAuth web-server flow for the connected Drive account.

    Example:
        >>> flow = OAuthFlow(store, settings)
        >>> url = flow.build_authorization_url()
        >>> # ... user consents, Google redirects to /drive/callback?code=...
        >>> token_set = flow.exchange_code(code, state=state)
    """

    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        session_factory: SessionFactory = create_session,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self._session_factory = session_factory
        self._clock = clock

    def _configured_credentials(self) -> OAuthClientCredentials:
        credentials = self.store.get_credentials()
        if not credentials.is_configured:
            raise NotConfiguredError()
        return credentials

    def build_authorization_url(self) -> str:
        """Start the OAuth authorization flow.

        Returns:
            Authorization URL for the administrator to visit.

        Raises:
            NotConfiguredError: If no client credentials are saved.
        """
        credentials = self._configured_credentials()
        session = self._session_factory(credentials, self.settings.redirect_uri)

        authorization_url, state = session.create_authorization_url(
            AUTHORIZE_URL,
            access_type="offline",
            prompt="consent",
        )

        self.store.save_oauth_state(state)
        return authorization_url

    def exchange_code(self, code: str, state: str | None = None) -> TokenSet:
        """Complete the authorization flow and persist the tokens.

        Args:
            code: Authorization code from the callback.
            state: State value echoed back by Google. Required whenever an
                authorization is pending.

        Returns:
            The stored TokenSet.

        Raises:
            AuthError: If the code is missing, the state does not match,
                or Google rejects the exchange.
            NotConfiguredError: If no client credentials are saved.
        """
        code = (code or "").strip()
        if not code:
            raise AuthError("Authorization code not received")

        expected_state = self.store.get_oauth_state()
        if expected_state and state != expected_state:
            logger.warning("OAuth callback state mismatch")
            raise AuthError("State mismatch")

        credentials = self._configured_credentials()
        session = self._session_factory(credentials, self.settings.redirect_uri)

        try:
            response = session.fetch_token(
                TOKEN_URL,
                code=code,
                timeout=self.settings.http_timeout,
            )
            if "error" in response:
                raise AuthError(response.get("error_description") or response["error"])
            token_set = token_set_from_response(response, self._clock())
        except AuthlibBaseError as e:
            raise AuthError(describe_oauth_error(e)) from e
        except requests.RequestException as e:
            raise AuthError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise AuthError(f"Invalid token response: {e}") from e

        self.store.save_token_set(token_set)
        self.store.save_oauth_state(None)
        logger.info("Authorization code exchanged for tokens")
        return token_set

    def handle_provider_error(self, error_param: str) -> None:
        """Terminate the flow after Google redirected back with an error.

        Raises:
            AuthError: Always, carrying the provider's error value.
        """
        logger.warning(f"Authorization denied by provider: {error_param}")
        raise AuthError(error_param or "unknown_error")

    def revoke(self) -> bool:
        """Revoke the current token and clear local storage.

        Returns:
            True if Google confirmed the revocation. The local token is
            cleared either way.
        """
        token_set = self.store.get_token_set()
        if token_set is None:
            logger.warning("No token to revoke")
            return False

        revoked = False
        try:
            response = requests.post(
                REVOKE_URL,
                params={"token": token_set.refresh_token or token_set.access_token},
                timeout=self.settings.http_timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Failed to revoke token remotely: {e}")
        else:
            revoked = bool(response.ok)
            if not revoked:
                logger.warning(f"Google rejected token revocation ({response.status_code})")

        self.store.clear_token_set()
        if revoked:
            logger.info("Token revoked successfully")
        else:
            logger.info("Local token cleared without remote revocation")
        return revoked
