"""Exception hierarchy shared across session handling and REST transport.

The SDK spans configuration checks, sign-in, session refresh, and every
request made through a service handle.  This module groups those failure
modes into a tidy hierarchy so caller code can react to high-level categories
(for example, credential problems vs. transient transport errors) while still
having access to specialised subclasses carrying the server's response detail
when finer-grained handling is required.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

__all__ = [
    "BridgeSDKError",
    "InvalidConfiguration",
    "InvalidCredentials",
    "NoRefreshableCredential",
    "TransportError",
    "BridgeHTTPError",
    "ValidationFailed",
    "AuthenticationFailed",
    "Forbidden",
    "NotFound",
    "Conflict",
    "UnsupportedVersion",
    "ConsentRequired",
    "ServerError",
]


class BridgeSDKError(RuntimeError):
    """Base exception for every failure raised by the SDK."""

    retryable: bool = False


class InvalidConfiguration(BridgeSDKError, ValueError):
    """Raised when a required constructor input is missing or empty."""


class InvalidCredentials(BridgeSDKError):
    """Raised when the server rejects a sign-in attempt."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoRefreshableCredential(BridgeSDKError):
    """Raised when a session must be refreshed but no password is available."""


class TransportError(BridgeSDKError):
    """Raised when no response was received (timeout, connection failure)."""

    retryable = True


class BridgeHTTPError(BridgeSDKError):
    """Raised for a completed exchange that the server answered with an error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body: Dict[str, Any] = dict(body or {})
        self.headers: Dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}

    def __str__(self) -> str:
        return f"{self.args[0]} (HTTP {self.status_code})"


class ValidationFailed(BridgeHTTPError):
    """Raised for 400-class responses; ``errors`` maps field names to messages."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 400,
        body: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        errors: Optional[Mapping[str, List[str]]] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body, headers=headers)
        self.errors: Dict[str, List[str]] = {
            field: list(messages) for field, messages in (errors or {}).items()
        }


class AuthenticationFailed(BridgeHTTPError):
    """Raised when the session token is missing, expired, or rejected."""


class Forbidden(BridgeHTTPError):
    """Raised when the caller is authenticated but not permitted."""


class NotFound(BridgeHTTPError):
    """Raised when the requested entity does not exist."""


class Conflict(BridgeHTTPError):
    """Raised on concurrent modification or duplicate entity."""


class UnsupportedVersion(BridgeHTTPError):
    """Raised when the server no longer supports this client's version."""


class ConsentRequired(BridgeHTTPError):
    """Raised when the participant has not consented; carries the session."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 412,
        body: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        session: Optional[Any] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body, headers=headers)
        self.session = session


class ServerError(BridgeHTTPError):
    """Raised for 5xx responses."""

    retryable = True
