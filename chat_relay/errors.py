"""
Error taxonomy for relay operations.

Every error a caller can observe derives from RelayError and carries the
HTTP status code the transport layer maps it to. AccountingFailure is
raised and absorbed inside the usage accountant only.
"""

from fastapi import status


class RelayError(Exception):
    """Base class for failures surfaced to relay callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(RelayError):
    """No caller identity could be established."""

    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "unauthorized"
    default_message = "Unauthorized: Please login first"


class InvalidInput(RelayError):
    """A required field is missing or empty."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_input"
    default_message = "Invalid request"


class UpstreamFailure(RelayError):
    """The generation API call raised."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "upstream_error"
    default_message = "Generation API request failed"


class ConfigurationError(RelayError):
    """The server is missing configuration needed to reach the upstream."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "config_error"
    default_message = "Missing required API key in server configuration"


class AccountingFailure(Exception):
    """A usage bookkeeping step failed. Never reaches the caller."""
