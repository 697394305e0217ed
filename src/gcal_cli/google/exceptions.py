"""Google authentication exceptions."""

from gcal_cli.exceptions import GcalError


class GoogleAuthError(GcalError):
    """Base exception for Google authentication errors."""

    code = "not_configured"


class NotConfiguredError(GoogleAuthError):
    """Raised when client credentials or the token are missing or invalid."""

    code = "not_configured"


class CredentialsNotFoundError(NotConfiguredError):
    """Raised when OAuth credentials file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"credentials not found at {path} - please configure OAuth credentials "
            "(see 'gcal import')"
        )


class TokenStoreError(GoogleAuthError):
    """Raised when the token file exists but cannot be read or parsed."""

    pass


class TokenExpiredError(GoogleAuthError):
    """Raised when the token cannot be refreshed and re-authorization is needed."""

    code = "token_expired"


class AuthFlowError(GoogleAuthError):
    """Base exception for the interactive authorization flow."""

    pass


class PortUnavailableError(AuthFlowError):
    """Raised when the local callback listener cannot bind its port."""

    def __init__(self, port: int, reason: str):
        self.port = port
        super().__init__(f"start callback server on port {port}: {reason}")


class AuthTimeoutError(AuthFlowError):
    """Raised when no callback arrives before the flow times out."""

    pass


class CallbackError(AuthFlowError):
    """Raised when the callback request carries no usable authorization code."""

    pass


class ExchangeError(AuthFlowError):
    """Raised when the authorization code cannot be exchanged for a token."""

    pass
