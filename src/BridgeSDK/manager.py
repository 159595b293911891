"""Configure service handles from settings and hand them out for one account.

:class:`ClientManager` resolves the deployment environment to a host, builds
the ``User-Agent`` from platform defaults overlaid with caller-supplied client
info, orders the accepted languages, and wires an
:class:`~BridgeSDK.rest.provider.ApiClientProvider`.  Handles obtained through
it re-authenticate the account transparently when the session expires.

The manager contacts the production servers unless another
:class:`~BridgeSDK.models.Environment` is configured.

Example:
    >>> manager = ClientManager(
    ...     sign_in=SignIn("my-study", "a@b.org", "secret"),
    ...     accept_languages=["en", "fr"],
    ... )
    >>> api = manager.get_client(SomeParticipantApi)
"""

from __future__ import annotations

import logging
import platform
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Type

import httpx

from BridgeSDK.errors import InvalidConfiguration
from BridgeSDK.models import ClientInfo, SignIn
from BridgeSDK.rest.headers import build_accept_language, build_user_agent, split_languages
from BridgeSDK.rest.policy import HTTP_CONNECT_TIMEOUT, HTTP_POOL_TIMEOUT
from BridgeSDK.rest.provider import ApiClientProvider
from BridgeSDK.rest.services import ServiceT
from BridgeSDK.rest.session import SessionStore
from BridgeSDK.settings import BridgeSettings, get_settings

__all__ = ["ClientManager", "ClientSupplier", "SDK_NAME", "default_client_info"]

logger = logging.getLogger(__name__)

SDK_NAME = "BridgePythonSDK"

#: ``supplier(host_url, user_agent, accept_language) -> ApiClientProvider``
ClientSupplier = Callable[[str, str, Optional[str]], ApiClientProvider]


def default_client_info(sdk_version: int) -> ClientInfo:
    """Describe the running platform and this SDK."""
    return ClientInfo(
        sdk_name=SDK_NAME,
        sdk_version=sdk_version,
        os_name=platform.system() or None,
        os_version=platform.release() or None,
        device_name=platform.machine() or None,
    )


class ClientManager:
    """Hands out authenticated service handles for one configured account."""

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        *,
        client_info: Optional[ClientInfo] = None,
        accept_languages: Optional[Sequence[str]] = None,
        sign_in: Optional[SignIn] = None,
        client_supplier: Optional[ClientSupplier] = None,
    ) -> None:
        """Resolve configuration and build the provider.

        Args:
            settings: Configuration; defaults to :func:`BridgeSDK.settings.get_settings`.
            client_info: App, device and OS fields overriding the platform defaults
                in the ``User-Agent``; its SDK name and version are ignored.
            accept_languages: Ordered language codes, most preferred first; when
                empty, the ``languages`` setting is used.  Duplicates are ignored.
            sign_in: Account credentials; when absent, taken from settings.
            client_supplier: Factory for the provider (tests inject a fake).

        Raises:
            InvalidConfiguration: No credentials, or credentials lacking study,
                email or password.
        """
        self._config = settings or get_settings()

        sign_in = sign_in or self._config.account_sign_in()
        if sign_in is None:
            raise InvalidConfiguration("Sign in must be supplied to ClientManager.")
        if not sign_in.study:
            raise InvalidConfiguration("Sign in must have a study identifier.")
        if not sign_in.email:
            raise InvalidConfiguration("Sign in must specify an email address.")
        if not sign_in.password:
            raise InvalidConfiguration("Sign in must specify a password.")
        self._sign_in = sign_in

        languages = list(accept_languages) if accept_languages else self._config.language_list
        accept_language = build_accept_language(languages)
        self._accept_languages: List[str] = split_languages(accept_language)
        # The SDK identifies itself; callers describe only the app, device and OS.
        if client_info is not None:
            client_info = replace(client_info, sdk_name=None, sdk_version=None)
        self._client_info = default_client_info(self._config.sdk_version).merged_with(client_info)

        supplier = client_supplier or self._default_supplier
        self._provider = supplier(
            self.host_url,
            build_user_agent(self._client_info),
            accept_language,
        )
        self._store: SessionStore = self._provider.session_store(sign_in)

        logger.debug(
            "ClientManager configured",
            extra={"environment": self._config.environment.value, "study": sign_in.study},
        )

    @property
    def config(self) -> BridgeSettings:
        return self._config

    @property
    def client_info(self) -> ClientInfo:
        return self._client_info

    @property
    def accept_languages(self) -> List[str]:
        return list(self._accept_languages)

    @property
    def host_url(self) -> str:
        return self._config.environment.host_url

    @property
    def provider(self) -> ApiClientProvider:
        return self._provider

    @property
    def session_store(self) -> SessionStore:
        return self._store

    def get_client(self, service_type: Type[ServiceT]) -> ServiceT:
        """Return an authenticated handle for the configured account."""
        return self._provider.get_client(service_type, self._sign_in)

    def sign_out(self) -> None:
        self._provider.sign_out(self._sign_in)

    def _default_supplier(
        self, host_url: str, user_agent: str, accept_language: Optional[str]
    ) -> ApiClientProvider:
        timeout = httpx.Timeout(
            connect=HTTP_CONNECT_TIMEOUT,
            read=self._config.timeout_sec,
            write=self._config.timeout_sec,
            pool=HTTP_POOL_TIMEOUT,
        )
        return ApiClientProvider(
            host_url,
            user_agent,
            accept_language,
            timeout=timeout,
            verify_tls=self._config.verify_tls,
        )
