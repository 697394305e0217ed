"""Google OAuth management using Authlib.

This module provides OAuth 2.0 authentication for the Google Calendar API with:
- Client credential and token loading from separate locations
- Silent token refresh, persisting the refreshed token
- The interactive authorization flow (see gcal_cli.google.flow)
- Calendar API service creation for the current session

Files live in XDG locations by default:
    ~/.config/gcal/gcal-credentials.json   - OAuth client credentials
    ~/.local/share/gcal/gcal-tokens.json   - OAuth tokens
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session
from google.oauth2.credentials import Credentials as GoogleCredentials
from googleapiclient.discovery import build

from gcal_cli.config import get_callback_port, get_credentials_path, get_token_path
from gcal_cli.google.credentials import ClientCredentials, load_credentials
from gcal_cli.google.exceptions import (
    GoogleAuthError,
    NotConfiguredError,
    TokenExpiredError,
    TokenStoreError,
)
from gcal_cli.google.token_store import TokenRecord, TokenStore

logger = logging.getLogger(__name__)

CALENDAR_READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"


@dataclass
class AuthSession:
    """Authenticated transport for one process run."""

    credentials: ClientCredentials
    token: TokenRecord
    token_uri: str = "https://oauth2.googleapis.com/token"
    scope: str = CALENDAR_READONLY_SCOPE

    def google_credentials(self) -> GoogleCredentials:
        """Get Google Credentials object for API client libraries."""
        expiry = None
        if self.token.expiry is not None:
            # google-auth compares against naive UTC datetimes
            expiry = self.token.expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return GoogleCredentials(
            token=self.token.access_token,
            refresh_token=self.token.refresh_token or None,
            token_uri=self.token_uri,
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret,
            scopes=[self.scope],
            expiry=expiry,
        )

    def build_service(self, service_name: str = "calendar", version: str = "v3"):
        """Build a Google API service with the session credentials.

        Returns:
            Google API service object.
        """
        return build(
            service_name,
            version,
            credentials=self.google_credentials(),
            cache_discovery=False,
        )


class GoogleOAuth:
    """Google OAuth management using Authlib.

    Handles the authorization flow, token refresh and persistence, and
    hands out authenticated sessions.

    Example:
        >>> auth = GoogleOAuth()
        >>> if not auth.is_configured():
        ...     auth.authorize()
        >>> service = auth.get_session().build_service()
    """

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        credentials_path: str | Path | None = None,
        token_path: str | Path | None = None,
        port: int | None = None,
    ):
        """Initialize Google OAuth.

        Args:
            credentials_path: Path to OAuth credentials file. Defaults to the config dir.
            token_path: Path to store/load tokens. Defaults to the data dir.
            port: Callback port used in the redirect URI. Defaults to
                GCAL_CALLBACK_PORT or 8085.
        """
        self.credentials_path = (
            Path(credentials_path) if credentials_path else get_credentials_path()
        )
        self.token_store = TokenStore(Path(token_path) if token_path else get_token_path())
        self.port = get_callback_port() if port is None else port

        self._credentials: ClientCredentials | None = None
        self.last_refresh: datetime | None = None
        self.refresh_count = 0

    @property
    def credentials(self) -> ClientCredentials:
        """Client credentials, loaded on first access.

        Raises:
            NotConfiguredError: If the credentials file is missing or invalid.
        """
        if self._credentials is None:
            self._credentials = load_credentials(self.credentials_path)
        return self._credentials

    def create_session(
        self,
        redirect_uri: str | None = None,
        token: dict[str, Any] | None = None,
    ) -> OAuth2Session:
        """Create an Authlib session bound to the client credentials."""
        creds = self.credentials
        return OAuth2Session(
            client_id=creds.client_id,
            client_secret=creds.client_secret,
            scope=CALENDAR_READONLY_SCOPE,
            redirect_uri=redirect_uri or f"http://localhost:{self.port}/callback",
            token=token,
            token_endpoint=self.TOKEN_URL,
            token_endpoint_auth_method="client_secret_post",
        )

    def _load_token(self) -> TokenRecord:
        try:
            record = self.token_store.load()
        except TokenStoreError as e:
            raise NotConfiguredError(f"load token: {e}") from e
        if record is None:
            raise NotConfiguredError("no token found - run 'gcal auth' first")
        return record

    def _refresh(self, record: TokenRecord) -> TokenRecord:
        """Exchange the refresh token for a new access token."""
        if not record.refresh_token:
            raise TokenExpiredError("token expired and no refresh token stored - run 'gcal auth'")

        logger.info("Token expired, refreshing...")
        session = self.create_session(token=record.to_oauth_token())
        try:
            token = session.refresh_token(self.TOKEN_URL, refresh_token=record.refresh_token)
        except (AuthlibBaseError, requests.RequestException) as e:
            raise TokenExpiredError(f"failed to refresh token: {e}") from e

        refreshed = TokenRecord.from_oauth_token(token, previous=record)
        if not refreshed.access_token:
            raise TokenExpiredError("failed to refresh token: no access token in response")

        self.last_refresh = datetime.now()
        self.refresh_count += 1
        return refreshed

    def get_session(self) -> AuthSession:
        """Get an authenticated session, refreshing the token if needed.

        Returns:
            AuthSession bound to the credentials and a usable token.

        Raises:
            NotConfiguredError: If credentials or token are missing or invalid.
            TokenExpiredError: If the token cannot be refreshed.
        """
        creds = self.credentials
        record = self._load_token()

        current = record if record.is_valid() else self._refresh(record)

        if current.access_token != record.access_token:
            try:
                self.token_store.save(current)
            except OSError as e:
                # The in-memory token is still usable for this run
                logger.warning(f"failed to save refreshed token: {e}")

        return AuthSession(credentials=creds, token=current, token_uri=self.TOKEN_URL)

    def is_configured(self) -> bool:
        """Check that credentials and a token are available, without network access."""
        try:
            creds = self.credentials
            return bool(creds) and self.token_store.load() is not None
        except GoogleAuthError:
            return False

    def authorize(
        self,
        timeout: float | None = None,
        open_browser: bool = True,
        announce: Callable[[str], None] | None = None,
    ) -> TokenRecord:
        """Perform interactive OAuth authorization.

        Args:
            timeout: Seconds to wait for the OAuth callback (default 5 minutes).
            open_browser: Whether to launch the default browser.
            announce: Called with the authorization URL.

        Returns:
            The newly saved TokenRecord.
        """
        from gcal_cli.google.flow import DEFAULT_TIMEOUT, AuthorizationFlow

        flow = AuthorizationFlow(
            self,
            port=self.port,
            timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
            open_browser=open_browser,
            announce=announce,
        )
        return flow.run()

    def revoke_token(self) -> bool:
        """Revoke the current token and clear local storage.

        Returns:
            True if a stored token was removed.

        Raises:
            OSError: If the token file cannot be removed.
        """
        try:
            record = self.token_store.load()
        except TokenStoreError as e:
            logger.warning(f"Discarding unreadable token: {e}")
            record = None

        if record is None and not self.token_store.exists():
            logger.warning("No token to revoke")
            return False

        token = (record.refresh_token or record.access_token) if record else ""
        if token:
            try:
                requests.post(self.REVOKE_URL, params={"token": token}, timeout=10)
            except requests.RequestException as e:
                logger.warning(f"Failed to revoke token remotely: {e}")

        removed = self.token_store.delete()
        logger.info("Token revoked successfully")
        return removed

    def get_token_info(self) -> dict[str, Any]:
        """Get information about the current token.

        Returns:
            Dictionary with token status, expiry, etc.
        """
        try:
            record = self.token_store.load()
        except TokenStoreError as e:
            return {"status": "invalid", "error": str(e)}

        if record is None:
            return {"status": "no_token"}

        if record.expiry is not None:
            expires_in = (record.expiry - datetime.now(timezone.utc)).total_seconds()
            expires_str = str(timedelta(seconds=int(max(0, expires_in))))
            expiry_str = record.expiry.isoformat()
        else:
            expires_str = "unknown"
            expiry_str = None

        return {
            "status": "valid" if record.is_valid() else "expired",
            "expires_in": expires_str,
            "expiry": expiry_str,
            "token_type": record.token_type,
            "has_refresh_token": bool(record.refresh_token),
            "refresh_count": self.refresh_count,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }
