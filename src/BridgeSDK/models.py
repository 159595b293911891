"""Immutable value objects exchanged between the SDK core and its callers.

``SignIn`` is the credential used as a cache key, ``UserSessionInfo`` is the
server-issued session owned by a :class:`~BridgeSDK.rest.session.SessionStore`,
and ``ClientInfo`` describes the calling application for the ``User-Agent``
header.  All three are frozen dataclasses: they are replaced wholesale, never
mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "Environment",
    "HOSTS",
    "SignIn",
    "UserSessionInfo",
    "ClientInfo",
]


class Environment(str, Enum):
    """Deployment environments with a fixed host each."""

    LOCAL = "local"
    DEVELOP = "develop"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def host_url(self) -> str:
        return HOSTS[self]


HOSTS: Dict[Environment, str] = {
    Environment.LOCAL: "http://localhost:9000",
    Environment.DEVELOP: "https://webservices-develop.sagebridge.org",
    Environment.STAGING: "https://webservices-staging.sagebridge.org",
    Environment.PRODUCTION: "https://webservices.sagebridge.org",
}


@dataclass(frozen=True)
class SignIn:
    """Credentials identifying a participant to the server.

    Attributes:
        study: Study (app) identifier the account belongs to.
        email: Account email; the identity half of the credential.
        password: Secret used to sign in and to refresh an expired session.
        session_token: Previously issued token, used until the server rejects it.
    """

    study: str
    email: str
    password: Optional[str] = field(default=None, repr=False)
    session_token: Optional[str] = field(default=None, repr=False)

    @property
    def can_refresh(self) -> bool:
        return bool(self.password)

    def to_json(self) -> Dict[str, Any]:
        """Return the sign-in request body."""

        return {"study": self.study, "email": self.email, "password": self.password}


@dataclass(frozen=True)
class UserSessionInfo:
    """Server-issued session for one participant.

    ``expires_at`` is optional; a session without it is never treated as
    known-expired and is only replaced once the server rejects its token.
    """

    session_token: str = field(repr=False)
    email: Optional[str] = None
    user_id: Optional[str] = None
    authenticated: bool = True
    consented: bool = False
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "UserSessionInfo":
        """Build a session from the sign-in response body.

        Raises:
            ValueError: If the payload carries no ``sessionToken``.
        """

        token = payload.get("sessionToken")
        if not isinstance(token, str) or not token:
            raise ValueError("sign-in response did not include a sessionToken")
        return cls(
            session_token=token,
            email=payload.get("email"),
            user_id=payload.get("id"),
            authenticated=bool(payload.get("authenticated", True)),
            consented=bool(payload.get("consented", False)),
            expires_at=_parse_timestamp(payload.get("expiresOn")),
            raw=dict(payload),
        )

    @classmethod
    def from_token(cls, token: str, *, email: Optional[str] = None) -> "UserSessionInfo":
        """Wrap a bare token supplied by the caller."""

        return cls(session_token=token, email=email)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at


@dataclass(frozen=True)
class ClientInfo:
    """Structured description of the calling application and platform."""

    sdk_name: Optional[str] = None
    sdk_version: Optional[int] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    device_name: Optional[str] = None
    app_name: Optional[str] = None
    app_version: Optional[int] = None

    def merged_with(self, other: Optional["ClientInfo"]) -> "ClientInfo":
        """Return a copy with every non-empty field of ``other`` applied on top."""

        if other is None:
            return self
        overrides = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) not in (None, "")
        }
        return replace(self, **overrides)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
