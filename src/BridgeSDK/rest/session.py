# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.session",
#   "purpose": "Per-credential session slot with single-flight sign-in and refresh.",
#   "sections": [
#     {
#       "id": "sessionstore",
#       "name": "SessionStore",
#       "anchor": "class-sessionstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Per-credential session slot with single-flight sign-in and refresh.

A :class:`SessionStore` owns the current :class:`~BridgeSDK.models.UserSessionInfo`
for exactly one credential and performs the sign-in call that (re)creates it.

Key design:
- **Single-flight**: while a sign-in is in flight, later callers wait on the same
  ``concurrent.futures.Future`` and observe the same session or the same error.
  The network sign-in runs at most once per refresh cycle.
- **Versioned slot**: every replacement bumps a monotonic version; a refresh
  commits only if the version it started from is still current, so a result
  that was superseded while in flight never overwrites a newer session.
- **No lock across I/O**: the store lock only guards the slot, the version and
  the in-flight marker.  The sign-in itself runs unlocked in the leader's thread.
- **Cancellation-safe**: a waiter that gives up does not disturb the shared
  refresh; the remaining waiters still receive its result.

Example:
    >>> store = SessionStore(sign_in, AuthenticationApi(unauthenticated_http))
    >>> token = store.current().session_token   # signs in on first use
    >>> store.refresh(rejected_token=token)      # forced re-authentication
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Optional

from BridgeSDK.errors import (
    BridgeHTTPError,
    ConsentRequired,
    InvalidCredentials,
    NoRefreshableCredential,
)
from BridgeSDK.models import SignIn, UserSessionInfo
from BridgeSDK.rest.services import AuthenticationApi

logger = logging.getLogger(__name__)


class SessionStore:
    """Thread-safe holder of the current session for one credential.

    Attributes:
        _sign_in: Credential this store authenticates.
        _auth_api: Unauthenticated handle used for the sign-in call.
        _session: Current session, or ``None`` before sign-in / after invalidation.
        _version: Incremented on every replacement of ``_session``.
        _inflight: Future shared by callers while a sign-in is running.
    """

    def __init__(self, sign_in: SignIn, auth_api: AuthenticationApi) -> None:
        self._sign_in = sign_in
        self._auth_api = auth_api
        self._lock = threading.Lock()
        self._session: Optional[UserSessionInfo] = None
        self._version = 0
        self._inflight: Optional["Future[UserSessionInfo]"] = None

        if sign_in.session_token:
            self._session = UserSessionInfo.from_token(sign_in.session_token, email=sign_in.email)

    @property
    def credential(self) -> SignIn:
        return self._sign_in

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def peek(self) -> Optional[UserSessionInfo]:
        """Return the cached session if it is not known-expired; never signs in."""
        with self._lock:
            session = self._session
        if session is None or session.is_expired():
            return None
        return session

    def current(self) -> UserSessionInfo:
        """Return the cached session, signing in first if there is none.

        Raises:
            NoRefreshableCredential: No session and no password to obtain one.
            InvalidCredentials: The server rejected the sign-in.
            TransportError: The sign-in call got no response.
        """
        session = self.peek()
        if session is not None:
            return session
        return self._single_flight(force=False, rejected_token=None)

    def refresh(self, rejected_token: Optional[str] = None) -> UserSessionInfo:
        """Force re-authentication with the credential's password.

        Args:
            rejected_token: Token the server just rejected.  If the current session
                already carries a different token, another caller has refreshed in
                the meantime and that session is returned without a network call.

        Raises:
            NoRefreshableCredential: The credential has no password.
            InvalidCredentials: The server rejected the sign-in.
            TransportError: The sign-in call got no response.
        """
        return self._single_flight(force=True, rejected_token=rejected_token)

    def replace(self, session: UserSessionInfo) -> None:
        """Install ``session`` obtained elsewhere; in-flight refresh results are discarded."""
        with self._lock:
            self._session = session
            self._version += 1

    def invalidate(self, rejected_token: Optional[str] = None) -> bool:
        """Clear the cached session (sign-out or unrecoverable failure).

        Args:
            rejected_token: When given, clear only if the current session still
                carries this token; a session installed by a concurrent refresh
                is left alone.

        Returns:
            ``True`` if the slot was cleared.
        """
        with self._lock:
            if rejected_token is not None and (
                self._session is None or self._session.session_token != rejected_token
            ):
                return False
            self._session = None
            self._version += 1
        logger.debug("Session invalidated", extra={"study": self._sign_in.study})
        return True

    def _single_flight(self, *, force: bool, rejected_token: Optional[str]) -> UserSessionInfo:
        with self._lock:
            session = self._session
            if session is not None and not session.is_expired():
                if not force:
                    return session
                if rejected_token is not None and session.session_token != rejected_token:
                    return session

            future = self._inflight
            leader = future is None
            if leader:
                if not self._sign_in.can_refresh:
                    raise NoRefreshableCredential(
                        f"no password available to re-authenticate {self._sign_in.study!r} account; "
                        "sessions created from a bare token cannot be refreshed"
                    )
                future = Future()
                self._inflight = future
                started_version = self._version

        if not leader:
            return future.result()

        try:
            fresh = self._sign_in_remote()
        except BaseException as exc:
            with self._lock:
                self._inflight = None
            future.set_exception(exc)
            raise

        with self._lock:
            if self._version == started_version:
                self._session = fresh
                self._version += 1
                result = fresh
            else:
                # Superseded while in flight; keep the newer slot contents.
                result = self._session or fresh
            self._inflight = None

        future.set_result(result)
        return result

    def _sign_in_remote(self) -> UserSessionInfo:
        logger.info("Signing in", extra={"study": self._sign_in.study, "stage": "session"})
        try:
            return self._auth_api.sign_in(self._sign_in)
        except ConsentRequired as exc:
            if exc.session is None:
                raise InvalidCredentials(
                    "sign-in requires consent but returned no session", status_code=exc.status_code
                ) from exc
            logger.info(
                "Signed in; participant has not consented",
                extra={"study": self._sign_in.study, "stage": "session"},
            )
            return exc.session
        except BridgeHTTPError as exc:
            if exc.status_code >= 500:
                raise
            raise InvalidCredentials(
                f"sign-in rejected: {exc.args[0]}", status_code=exc.status_code
            ) from exc
        except ValueError as exc:
            raise InvalidCredentials(f"sign-in returned no session: {exc}") from exc

    def __repr__(self) -> str:
        return f"SessionStore(study={self._sign_in.study!r}, version={self._version})"


__all__ = ["SessionStore"]
