"""REST subsystem: staged HTTPX transports, session lifecycle, and handle caching.

This package provides the authenticated transport stack for the Bridge API:
- stages: explicit ordered stage pipeline and HTTPX client factory
- headers: ``User-Agent`` / ``Accept-Language`` decoration
- classifier: typed error mapping and warning tagging
- instrumentation: per-exchange logging
- session: single-flight session store
- auth: session attacher with one-shot retry
- cache: weak-value handle cache
- provider: public entry point
- retry: opt-in Tenacity policy for transient failures

Example:
    >>> from BridgeSDK.rest import ApiClientProvider
    >>> provider = ApiClientProvider.build(base_url, user_agent, "en,fr")
    >>> api = provider.get_client(SomeApi, sign_in)
"""

from BridgeSDK.rest.auth import AuthDecision, SessionAttacher, decide
from BridgeSDK.rest.cache import ClientCache
from BridgeSDK.rest.classifier import classify_response
from BridgeSDK.rest.headers import build_accept_language, build_user_agent
from BridgeSDK.rest.provider import ApiClientProvider, BridgeTransportFactory
from BridgeSDK.rest.retry import create_transport_retry_policy
from BridgeSDK.rest.services import AuthenticationApi, ServiceClient
from BridgeSDK.rest.session import SessionStore
from BridgeSDK.rest.stages import NamedStage, StagedTransport, TransportConfiguration

__all__ = [
    # Entry point
    "ApiClientProvider",
    "BridgeTransportFactory",
    # Handles
    "ServiceClient",
    "AuthenticationApi",
    "ClientCache",
    # Session lifecycle
    "SessionStore",
    "SessionAttacher",
    "AuthDecision",
    "decide",
    # Transport
    "NamedStage",
    "StagedTransport",
    "TransportConfiguration",
    "classify_response",
    "build_user_agent",
    "build_accept_language",
    # Caller policy
    "create_transport_retry_policy",
]
