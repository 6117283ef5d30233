"""
Exception types raised by the transport client.
"""

from typing import Optional


class TransportClientError(Exception):
    """Base class for every error raised by this package."""


class ApiError(TransportClientError):
    """A REST call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code!r}, message={self.message!r})"


class NotConnectedError(TransportClientError):
    """The live socket connection is not available."""


class UnsupportedRoleError(TransportClientError):
    """The signed-in user's role has no transport view."""

    def __init__(self, role: Optional[str]):
        super().__init__(f"No transport view for role {role!r}")
        self.role = role
