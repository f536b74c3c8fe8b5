"""Custom exceptions for API contract and POS integration errors."""

from typing import Any, Dict, Optional


class ContractError(Exception):
    """Error that maps to a stable API error payload."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class PosIntegrationError(Exception):
    """Base error for vendor calls.

    `status_code` and `body` hold the raw vendor response for server-side
    logging; they are never copied into the message returned to callers.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class AuthError(PosIntegrationError):
    """Missing or rejected credentials, or an unparseable token response."""


class NetworkError(PosIntegrationError):
    """Transport failure or non-2xx vendor response."""


class MalformedResponseError(PosIntegrationError):
    """Vendor response did not match any known shape."""


class ValidationError(PosIntegrationError):
    """Internal record is missing fields required by the requested operation."""
