"""Python client SDK for the Bridge health-research platform REST API.

Service handles are obtained from :class:`~BridgeSDK.rest.provider.ApiClientProvider`
(or, configured from the environment, :class:`~BridgeSDK.manager.ClientManager`).
Authenticated handles sign in on first use and re-authenticate transparently,
once, when the server rejects an expired session.
"""

from __future__ import annotations

from BridgeSDK.errors import (
    AuthenticationFailed,
    BridgeHTTPError,
    BridgeSDKError,
    Conflict,
    ConsentRequired,
    Forbidden,
    InvalidConfiguration,
    InvalidCredentials,
    NoRefreshableCredential,
    NotFound,
    ServerError,
    TransportError,
    UnsupportedVersion,
    ValidationFailed,
)
from BridgeSDK.manager import ClientManager
from BridgeSDK.models import ClientInfo, Environment, SignIn, UserSessionInfo
from BridgeSDK.rest.provider import ApiClientProvider
from BridgeSDK.rest.services import AuthenticationApi, ServiceClient

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ApiClientProvider",
    "ClientManager",
    "ServiceClient",
    "AuthenticationApi",
    "SignIn",
    "UserSessionInfo",
    "ClientInfo",
    "Environment",
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
