"""Session attacher stage: attach the session token and replay once on rejection.

The retry decision is an explicit function of the outcome and attempt number
(:func:`decide`) rather than a hook into HTTPX's own auth flow, so the
one-retry bound is visible and testable on its own.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import httpx

from BridgeSDK.errors import AuthenticationFailed, InvalidCredentials, NoRefreshableCredential
from BridgeSDK.rest.policy import MAX_AUTHENTICATED_ATTEMPTS, SESSION_HEADER, STAGE_SESSION
from BridgeSDK.rest.session import SessionStore
from BridgeSDK.rest.stages import CallNext, NamedStage

__all__ = ["AuthDecision", "decide", "SessionAttacher", "create_session_stage"]

logger = logging.getLogger(__name__)


class AuthDecision(str, Enum):
    PASS_THROUGH = "pass_through"
    RETRY_WITH_NEW_SESSION = "retry_with_new_session"
    FAIL = "fail"


def decide(error: Optional[BaseException], attempt: int) -> AuthDecision:
    """Decide what to do with the outcome of ``attempt`` (1-based).

    Only authentication failures are ever retried, and only while
    ``attempt`` is below :data:`MAX_AUTHENTICATED_ATTEMPTS`.
    """
    if not isinstance(error, AuthenticationFailed):
        return AuthDecision.PASS_THROUGH
    if attempt < MAX_AUTHENTICATED_ATTEMPTS:
        return AuthDecision.RETRY_WITH_NEW_SESSION
    return AuthDecision.FAIL


class SessionAttacher:
    """Stage bound to one :class:`SessionStore` for the lifetime of its transport."""

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    @property
    def store(self) -> SessionStore:
        return self._store

    def __call__(self, request: httpx.Request, call_next: CallNext) -> httpx.Response:
        session = self._store.peek()
        sent_token = session.session_token if session is not None else None
        attempt = 1
        outgoing = _with_token(request, sent_token)

        while True:
            try:
                return call_next(outgoing)
            except AuthenticationFailed as exc:
                decision = decide(exc, attempt)
                if decision is AuthDecision.FAIL:
                    logger.warning(
                        "Request still unauthenticated after session refresh",
                        extra={"stage": STAGE_SESSION, "path": request.url.path},
                    )
                    self._discard(sent_token)
                    raise
                if decision is AuthDecision.PASS_THROUGH:
                    raise

            logger.info(
                "Session rejected; re-authenticating",
                extra={"stage": STAGE_SESSION, "path": request.url.path},
            )
            try:
                if sent_token is None:
                    fresh = self._store.current()
                else:
                    fresh = self._store.refresh(rejected_token=sent_token)
            except (InvalidCredentials, NoRefreshableCredential):
                self._discard(sent_token)
                raise
            sent_token = fresh.session_token
            attempt += 1
            outgoing = _with_token(request, sent_token)

    def _discard(self, rejected_token: Optional[str]) -> None:
        # A request sent without a token found no session to clear.
        if rejected_token is not None:
            self._store.invalidate(rejected_token=rejected_token)


def create_session_stage(store: SessionStore) -> NamedStage:
    return NamedStage(STAGE_SESSION, SessionAttacher(store))


def _with_token(request: httpx.Request, token: Optional[str]) -> httpx.Request:
    """Rebuild ``request`` with ``token`` in the session header (or without it)."""
    headers = httpx.Headers(request.headers)
    if token:
        headers[SESSION_HEADER] = token
    elif SESSION_HEADER in headers:
        del headers[SESSION_HEADER]
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.read(),
        extensions=dict(request.extensions),
    )
