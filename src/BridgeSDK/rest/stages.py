# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.stages",
#   "purpose": "Ordered stage pipeline and HTTPX client factory for Bridge transports.",
#   "sections": [
#     {
#       "id": "namedstage",
#       "name": "NamedStage",
#       "anchor": "class-namedstage",
#       "kind": "class"
#     },
#     {
#       "id": "transportconfiguration",
#       "name": "TransportConfiguration",
#       "anchor": "class-transportconfiguration",
#       "kind": "class"
#     },
#     {
#       "id": "stagedtransport",
#       "name": "StagedTransport",
#       "anchor": "class-stagedtransport",
#       "kind": "class"
#     },
#     {
#       "id": "build-http-client",
#       "name": "build_http_client",
#       "anchor": "function-build-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "create-ssl-context",
#       "name": "_create_ssl_context",
#       "anchor": "function-create-ssl-context",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Ordered stage pipeline and HTTPX client factory for Bridge transports.

Every request leaving a service handle runs through an explicit, ordered tuple
of named stages before it reaches the network.  A stage is a plain callable
``stage(request, call_next) -> response``: it may adjust the request, call the
next stage (possibly more than once), inspect or annotate the response, and
raise typed errors.  The tuple is data, so the ordering is visible and testable
instead of being an accident of builder calls.

Key design:
- **Outermost first**: ``stages[0]`` sees the request first and the outcome last.
- **Network last**: after the final stage the wrapped ``httpx`` transport runs.
- **Immutable**: a :class:`TransportConfiguration` never changes after it is built;
  an authenticated configuration holds exactly one session stage for its lifetime.
- **Thread-safe**: stages hold no per-request state, so one ``httpx.Client`` is
  shared by every thread using a handle.

Example:
    >>> config = TransportConfiguration(
    ...     name="unauthenticated",
    ...     base_url="https://webservices.sagebridge.org",
    ...     stages=(NamedStage("headers", header_stage),),
    ... )
    >>> client = build_http_client(config)
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import certifi
import httpx

from BridgeSDK.rest.policy import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    STAGE_SESSION,
    TLS_VERIFY_ENABLED,
)

logger = logging.getLogger(__name__)

CallNext = Callable[[httpx.Request], httpx.Response]
Stage = Callable[[httpx.Request, CallNext], httpx.Response]


def default_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=HTTP_CONNECT_TIMEOUT,
        read=HTTP_READ_TIMEOUT,
        write=HTTP_WRITE_TIMEOUT,
        pool=HTTP_POOL_TIMEOUT,
    )


@dataclass(frozen=True)
class NamedStage:
    """A stage callable paired with the name used in ordering checks and logs."""

    name: str
    handler: Stage

    def __call__(self, request: httpx.Request, call_next: CallNext) -> httpx.Response:
        return self.handler(request, call_next)


@dataclass(frozen=True)
class TransportConfiguration:
    """Base network settings plus the ordered stage tuple for one trust level.

    Attributes:
        name: Label used in logs ("unauthenticated", "authenticated").
        base_url: Server root every relative request path is joined to.
        stages: Outermost-first stages applied to every request.
        timeout: Per-phase HTTPX timeout budget.
        verify_tls: Whether HTTPS certificates are verified.
    """

    name: str
    base_url: str
    stages: Tuple[NamedStage, ...] = ()
    timeout: httpx.Timeout = field(default_factory=default_timeout)
    verify_tls: bool = TLS_VERIFY_ENABLED

    def __post_init__(self) -> None:
        names = self.stage_names
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate stage names in {self.name!r}: {names}")
        if names.count(STAGE_SESSION) > 1:
            raise ValueError(f"{self.name!r} has more than one session stage")

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    @property
    def authenticated(self) -> bool:
        return STAGE_SESSION in self.stage_names

    def stage(self, name: str) -> NamedStage:
        for candidate in self.stages:
            if candidate.name == name:
                return candidate
        raise KeyError(name)


class StagedTransport(httpx.BaseTransport):
    """HTTPX transport that runs the configured stages around an inner transport."""

    def __init__(
        self,
        stages: Tuple[NamedStage, ...],
        transport: httpx.BaseTransport,
        *,
        close_inner: bool = True,
    ) -> None:
        self._stages = stages
        self._transport = transport
        self._close_inner = close_inner

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self._dispatch(0, request)

    def _dispatch(self, index: int, request: httpx.Request) -> httpx.Response:
        if index == len(self._stages):
            return self._transport.handle_request(request)

        def call_next(next_request: httpx.Request) -> httpx.Response:
            return self._dispatch(index + 1, next_request)

        return self._stages[index](request, call_next)

    def close(self) -> None:
        # A shared inner transport is closed by its owner.
        if self._close_inner:
            self._transport.close()


def build_http_client(
    config: TransportConfiguration,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create an HTTPX client that routes every request through ``config.stages``.

    Args:
        config: Transport configuration to bind.
        transport: Shared inner transport (connection pool) owned by the caller;
            closing the client leaves it open.  Defaults to a private
            ``httpx.HTTPTransport`` with TLS verification per ``config``, which
            the client closes.

    Returns:
        A configured ``httpx.Client``; safe to share between threads.
    """
    inner = transport or create_network_transport(config.verify_tls)

    client = httpx.Client(
        base_url=config.base_url,
        transport=StagedTransport(config.stages, inner, close_inner=transport is None),
        timeout=config.timeout,
        follow_redirects=False,
    )

    logger.debug(
        "HTTPX client created",
        extra={
            "transport": config.name,
            "base_url": config.base_url,
            "stages": list(config.stage_names),
        },
    )
    return client


def create_network_transport(verify_tls: bool = TLS_VERIFY_ENABLED) -> httpx.HTTPTransport:
    """Create the pooled network transport, verifying TLS against the certifi bundle."""
    return httpx.HTTPTransport(verify=_create_ssl_context(verify_tls))


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create SSL context with secure defaults.

    Uses the certifi bundle; refuses self-signed or weak certs unless
    verification is explicitly disabled (local development servers).
    """
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED (development only!)")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


__all__ = [
    "CallNext",
    "Stage",
    "NamedStage",
    "TransportConfiguration",
    "StagedTransport",
    "build_http_client",
    "create_network_transport",
    "default_timeout",
]
