"""Google OAuth authentication for the calendar CLI."""

from gcal_cli.google.credentials import ClientCredentials, import_credentials, load_credentials
from gcal_cli.google.exceptions import (
    AuthFlowError,
    AuthTimeoutError,
    CallbackError,
    CredentialsNotFoundError,
    ExchangeError,
    GoogleAuthError,
    NotConfiguredError,
    PortUnavailableError,
    TokenExpiredError,
    TokenStoreError,
)
from gcal_cli.google.flow import AuthorizationFlow, FlowState
from gcal_cli.google.oauth import AuthSession, GoogleOAuth
from gcal_cli.google.token_store import TokenRecord, TokenStore

__all__ = [
    "GoogleOAuth",
    "AuthSession",
    "AuthorizationFlow",
    "FlowState",
    "ClientCredentials",
    "load_credentials",
    "import_credentials",
    "TokenRecord",
    "TokenStore",
    "GoogleAuthError",
    "NotConfiguredError",
    "CredentialsNotFoundError",
    "TokenStoreError",
    "TokenExpiredError",
    "AuthFlowError",
    "PortUnavailableError",
    "AuthTimeoutError",
    "CallbackError",
    "ExchangeError",
]
