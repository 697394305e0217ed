"""Google Calendar API exceptions."""

from gcal_cli.exceptions import GcalError


class APIError(GcalError):
    """Raised when the Calendar API returns an error."""

    code = "api_error"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NetworkError(APIError):
    """Raised when the Calendar API cannot be reached."""

    code = "network_error"
