"""Service client handles bound to one configured transport.

A service type is a :class:`ServiceClient` subclass grouping related remote
operations.  The provider builds handles by calling the subclass with the
``httpx.Client`` of the right trust level, so ``get_client(SomeApi)`` is a
generic factory parameterised by the target class.  Handles keep no mutable
state of their own and are safe to share between threads.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Type, TypeVar

import httpx

from BridgeSDK.models import SignIn, UserSessionInfo
from BridgeSDK.rest.policy import SESSION_HEADER, SIGN_IN_PATH, SIGN_OUT_PATH

__all__ = ["ServiceClient", "ServiceT", "AuthenticationApi"]

ServiceT = TypeVar("ServiceT", bound="ServiceClient")


class ServiceClient:
    """Base class for a bound group of remote operations."""

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    @property
    def http(self) -> httpx.Client:
        return self._http

    @classmethod
    def service_name(cls: Type["ServiceClient"]) -> str:
        return cls.__name__

    def _call(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body, or ``None`` if empty.

        Errors are raised by the transport stages, never here.
        """
        response = self._http.request(method, path, params=params, json=json, headers=headers)
        if not response.content:
            return None
        return response.json()

    def _get(self, path: str, **params: Any) -> Any:
        return self._call("GET", path, params=params or None)

    def _post(self, path: str, json: Any = None) -> Any:
        return self._call("POST", path, json=json)

    def _delete(self, path: str) -> Any:
        return self._call("DELETE", path)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={str(self._http.base_url)!r})"


class AuthenticationApi(ServiceClient):
    """Sign-in and sign-out endpoints."""

    def sign_in(self, sign_in: SignIn) -> UserSessionInfo:
        payload = self._post(SIGN_IN_PATH, json=sign_in.to_json())
        if not isinstance(payload, dict):
            raise ValueError(
                f"sign-in response was not a JSON object: {type(payload).__name__}"
            )
        return UserSessionInfo.from_json(payload)

    def sign_out(self, session_token: Optional[str] = None) -> None:
        """End the session; ``session_token`` is sent explicitly when given."""
        headers = {SESSION_HEADER: session_token} if session_token else None
        self._call("POST", SIGN_OUT_PATH, headers=headers)
