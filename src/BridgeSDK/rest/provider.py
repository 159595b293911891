# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.provider",
#   "purpose": "Public entry point wiring stages, transports, session stores and the client cache.",
#   "sections": [
#     {
#       "id": "bridgetransportfactory",
#       "name": "BridgeTransportFactory",
#       "anchor": "class-bridgetransportfactory",
#       "kind": "class"
#     },
#     {
#       "id": "apiclientprovider",
#       "name": "ApiClientProvider",
#       "anchor": "class-apiclientprovider",
#       "kind": "class"
#     },
#     {
#       "id": "validate-sign-in",
#       "name": "validate_sign_in",
#       "anchor": "function-validate-sign-in",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public entry point wiring stages, transports, session stores and the client cache.

Two transport configurations exist per provider:

    unauthenticated   headers -> warnings -> classify -> log -> network
    authenticated     headers -> session -> warnings -> classify -> log -> network

Header decoration runs before the session attacher so the attacher can rely
on a fully decorated request when it rebuilds one for a retry.  The logging
stage is innermost so it records every network exchange, and the classifier
sits just outside it so the attacher sees typed errors.

Example:
    >>> provider = ApiClientProvider.build(
    ...     "https://webservices.sagebridge.org",
    ...     "MyApp/4 (Pixel; Android/14) BridgePythonSDK/1",
    ...     "en,fr",
    ... )
    >>> api = provider.get_client(SomeParticipantApi, SignIn("study", "a@b.org", "pw"))
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Type

import httpx

from BridgeSDK.errors import AuthenticationFailed, InvalidConfiguration
from BridgeSDK.models import SignIn
from BridgeSDK.rest.auth import create_session_stage
from BridgeSDK.rest.cache import ClientCache
from BridgeSDK.rest.classifier import create_classifier_stage, create_warning_stage
from BridgeSDK.rest.headers import create_header_stage
from BridgeSDK.rest.instrumentation import create_logging_stage
from BridgeSDK.rest.policy import TLS_VERIFY_ENABLED
from BridgeSDK.rest.services import AuthenticationApi, ServiceClient, ServiceT
from BridgeSDK.rest.session import SessionStore
from BridgeSDK.rest.stages import (
    NamedStage,
    TransportConfiguration,
    build_http_client,
    create_network_transport,
    default_timeout,
)

__all__ = ["ApiClientProvider", "BridgeTransportFactory", "validate_sign_in"]

logger = logging.getLogger(__name__)


def validate_sign_in(sign_in: SignIn) -> SignIn:
    """Check that ``sign_in`` can identify and authenticate an account.

    Raises:
        InvalidConfiguration: Missing study or email, or neither password nor token.
    """
    if not isinstance(sign_in, SignIn):
        raise InvalidConfiguration(f"credential must be a SignIn, got {type(sign_in).__name__}")
    if not sign_in.study:
        raise InvalidConfiguration("sign in must have a study identifier")
    if not sign_in.email:
        raise InvalidConfiguration("sign in must specify an email address")
    if not sign_in.password and not sign_in.session_token:
        raise InvalidConfiguration("sign in requires at least one of password or session token")
    return sign_in


class BridgeTransportFactory:
    """Builds the unauthenticated and per-credential authenticated transports."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        accept_language: Optional[str] = None,
        *,
        timeout: Optional[httpx.Timeout] = None,
        verify_tls: bool = TLS_VERIFY_ENABLED,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout or default_timeout()
        self._verify_tls = verify_tls
        # One pool shared by every client this factory builds.
        self._network = transport or create_network_transport(verify_tls)
        self._header_stage = create_header_stage(user_agent, accept_language)
        self._warning_stage = create_warning_stage()
        self._classifier_stage = create_classifier_stage()
        self._logging_stage = create_logging_stage()
        self._unauthenticated_http: Optional[httpx.Client] = None

    def unauthenticated_configuration(self) -> TransportConfiguration:
        return self._configuration("unauthenticated", None)

    def authenticated_configuration(self, store: SessionStore) -> TransportConfiguration:
        return self._configuration("authenticated", create_session_stage(store))

    def build_unauthenticated_client(self) -> httpx.Client:
        if self._unauthenticated_http is None:
            self._unauthenticated_http = build_http_client(
                self.unauthenticated_configuration(), self._network
            )
        return self._unauthenticated_http

    def build_authenticated_client(self, store: SessionStore) -> httpx.Client:
        return build_http_client(self.authenticated_configuration(store), self._network)

    @property
    def network_transport(self) -> httpx.BaseTransport:
        return self._network

    def build_session_store(self, sign_in: SignIn) -> SessionStore:
        return SessionStore(sign_in, AuthenticationApi(self.build_unauthenticated_client()))

    def close(self) -> None:
        """Close the shared connection pool."""
        self._network.close()

    def _configuration(self, name: str, session_stage: Optional[NamedStage]) -> TransportConfiguration:
        stages: Tuple[NamedStage, ...] = (self._header_stage,)
        if session_stage is not None:
            stages += (session_stage,)
        stages += (self._warning_stage, self._classifier_stage, self._logging_stage)
        return TransportConfiguration(
            name=name,
            base_url=self._base_url,
            stages=stages,
            timeout=self._timeout,
            verify_tls=self._verify_tls,
        )


class ApiClientProvider:
    """Creates and caches service handles correctly configured for the Bridge server.

    Unauthenticated handles can only reach public endpoints.  Authenticated
    handles attach the credential's session to every call and re-authenticate
    transparently (once) when the server rejects it.
    """

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        accept_language: Optional[str] = None,
        credential: Optional[SignIn] = None,
        *,
        timeout: Optional[httpx.Timeout] = None,
        verify_tls: bool = TLS_VERIFY_ENABLED,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Validate inputs and prepare the transport factory; no network I/O happens here.

        Args:
            base_url: Root URL of the Bridge server.
            user_agent: ``User-Agent`` value, see :func:`BridgeSDK.rest.headers.build_user_agent`.
            accept_language: Optional comma-separated language preference list.
            credential: Optional default credential; its session store is kept alive
                for the provider's lifetime.
            timeout: Per-phase HTTPX timeouts; defaults from :mod:`BridgeSDK.rest.policy`.
            verify_tls: Verify HTTPS certificates.
            transport: Inner HTTPX transport standing in for the network (tests).

        Raises:
            InvalidConfiguration: ``base_url`` or ``user_agent`` empty, or an invalid credential.
        """
        if not isinstance(base_url, str) or not base_url.strip():
            raise InvalidConfiguration("base URL must not be empty")
        if not isinstance(user_agent, str) or not user_agent.strip():
            raise InvalidConfiguration("user agent must not be empty")
        if credential is not None:
            validate_sign_in(credential)

        self._base_url = base_url.strip()
        self._credential = credential
        self._factory = BridgeTransportFactory(
            self._base_url,
            user_agent,
            accept_language,
            timeout=timeout,
            verify_tls=verify_tls,
            transport=transport,
        )
        self._cache = ClientCache(self._factory)
        self._default_store: Optional[SessionStore] = (
            self._cache.session_store(credential) if credential is not None else None
        )

        logger.debug(
            "ApiClientProvider created",
            extra={"base_url": self._base_url, "has_credential": credential is not None},
        )

    @classmethod
    def build(
        cls,
        base_url: str,
        user_agent: str,
        accept_language: Optional[str] = None,
        credential: Optional[SignIn] = None,
        **kwargs,
    ) -> "ApiClientProvider":
        """Validate inputs and build a provider (see ``__init__`` for arguments)."""
        return cls(base_url, user_agent, accept_language, credential, **kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def credential(self) -> Optional[SignIn]:
        return self._credential

    @property
    def factory(self) -> BridgeTransportFactory:
        return self._factory

    @property
    def cache(self) -> ClientCache:
        return self._cache

    def get_client(
        self, service_type: Type[ServiceT], credential: Optional[SignIn] = None
    ) -> ServiceT:
        """Return the cached handle for ``service_type``.

        Args:
            service_type: A :class:`ServiceClient` subclass.
            credential: Credentials for an authenticated handle, or ``None`` for
                an unauthenticated one.

        Raises:
            TypeError: ``service_type`` is not a ``ServiceClient`` subclass.
            InvalidConfiguration: ``credential`` is invalid.
        """
        if not (isinstance(service_type, type) and issubclass(service_type, ServiceClient)):
            raise TypeError(f"{service_type!r} is not a ServiceClient subclass")
        if credential is None:
            return self._cache.get_unauthenticated(service_type)
        return self._cache.get_authenticated(service_type, validate_sign_in(credential))

    def session_store(self, credential: Optional[SignIn] = None) -> SessionStore:
        """Return the session store for ``credential`` (defaults to the build credential)."""
        return self._cache.session_store(self._require_credential(credential))

    def sign_out(self, credential: Optional[SignIn] = None) -> None:
        """Sign out on the server (if signed in) and clear the local session."""
        sign_in = self._require_credential(credential)
        store = self._cache.session_store(sign_in)
        session = store.peek()
        if session is None:
            store.invalidate()
            return
        # Sent unauthenticated so an expired token is not refreshed just to be discarded.
        try:
            self.get_client(AuthenticationApi).sign_out(session.session_token)
        except AuthenticationFailed:
            logger.debug(
                "Session already expired on the server", extra={"study": sign_in.study}
            )
        finally:
            store.invalidate()

    def close(self) -> None:
        """Close every live HTTPX client and the shared connection pool."""
        for client in self._cache.authenticated_clients():
            client.close()
        self._cache.unauthenticated_http.close()
        self._cache.clear()
        self._factory.close()
        logger.debug("ApiClientProvider closed", extra={"base_url": self._base_url})

    def __enter__(self) -> "ApiClientProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require_credential(self, credential: Optional[SignIn]) -> SignIn:
        sign_in = credential or self._credential
        if sign_in is None:
            raise InvalidConfiguration("no credential given and provider has no default credential")
        return validate_sign_in(sign_in)
