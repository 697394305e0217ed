"""Base exception shared by the authentication and calendar packages."""


class GcalError(Exception):
    """Base exception for gcal-cli errors.

    Subclasses set ``code`` to the machine-readable error code that ends up
    in the JSON response.
    """

    code = "api_error"
