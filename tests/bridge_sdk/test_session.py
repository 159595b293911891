"""Tests for the per-credential session store.

Tests cover:
- Lazy sign-in and session reuse
- Single-flight refresh under concurrency
- Version guard against superseded refresh results
- Failure mapping (rejected credentials, transport errors, consent)
- Token-only credentials
"""

import json
import threading
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from bridge_fakes import BASE_URL, PASSWORD, USER_AGENT, FakeBridgeServer
from BridgeSDK.errors import (
    InvalidCredentials,
    NoRefreshableCredential,
    ServerError,
    TransportError,
)
from BridgeSDK.models import SignIn, UserSessionInfo
from BridgeSDK.rest.provider import BridgeTransportFactory


def _store(server, sign_in):
    factory = BridgeTransportFactory(BASE_URL, USER_AGENT, transport=server.transport())
    return factory.build_session_store(sign_in)


class TestSessionLifecycle:
    """Test sign-in, reuse and invalidation."""

    def test_peek_never_signs_in(self, server, sign_in):
        store = _store(server, sign_in)
        assert store.peek() is None
        assert server.sign_in_calls == 0

    def test_current_signs_in_once(self, server, sign_in):
        store = _store(server, sign_in)

        first = store.current()
        second = store.current()

        assert first is second
        assert first.session_token == "token-1"
        assert first.user_id == "user-1"
        assert server.sign_in_calls == 1
        assert store.version == 1

    def test_sign_in_request_body(self, server, sign_in):
        _store(server, sign_in).current()

        (request,) = server.requests_to("/v3/auth/signIn")
        assert request.method == "POST"
        assert json.loads(request.content) == {
            "study": "api",
            "email": sign_in.email,
            "password": PASSWORD,
        }
        assert "Bridge-Session" not in request.headers

    def test_refresh_replaces_session(self, server, sign_in):
        store = _store(server, sign_in)
        old = store.current()

        fresh = store.refresh(rejected_token=old.session_token)

        assert fresh.session_token == "token-2"
        assert store.peek() is fresh
        assert server.sign_in_calls == 2

    def test_stale_rejection_skips_network(self, server, sign_in):
        """A rejection of an already-replaced token returns the current session."""
        store = _store(server, sign_in)
        store.current()
        current = store.refresh()

        again = store.refresh(rejected_token="token-1")

        assert again is current
        assert server.sign_in_calls == 2

    def test_invalidate_forces_new_sign_in(self, server, sign_in):
        store = _store(server, sign_in)
        store.current()
        store.invalidate()

        assert store.peek() is None
        assert store.current().session_token == "token-2"

    def test_expired_session_is_not_returned(self, server, sign_in):
        store = _store(server, sign_in)
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        store.replace(UserSessionInfo(session_token="old", expires_at=past))

        assert store.peek() is None
        assert store.current().session_token == "token-1"

    def test_seeded_token(self, server):
        seeded = SignIn("api", "a@b.org", PASSWORD, session_token="seed")
        store = _store(server, seeded)

        assert store.peek().session_token == "seed"
        assert store.current().session_token == "seed"
        assert server.sign_in_calls == 0


class TestSingleFlight:
    """Test concurrent refresh coalescing."""

    def test_concurrent_refreshes_sign_in_once(self, server):
        """Property: N concurrent refreshes of the same token produce one sign-in."""
        seeded = SignIn("api", "a@b.org", PASSWORD, session_token="seed")
        store = _store(server, seeded)
        server.sign_in_gate = threading.Event()

        results = []
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                results.append(store.refresh(rejected_token="seed"))
            except Exception as exc:  # pragma: no cover - reported below
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        time.sleep(0.2)
        server.sign_in_gate.set()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert len(results) == 8
        assert server.sign_in_calls == 1
        assert {session.session_token for session in results} == {"token-1"}

    def test_waiters_observe_the_same_failure(self, server):
        seeded = SignIn("api", "a@b.org", "wrong-password", session_token="seed")
        store = _store(server, seeded)
        server.sign_in_gate = threading.Event()

        errors = []
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            try:
                store.refresh(rejected_token="seed")
            except InvalidCredentials as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        time.sleep(0.2)
        server.sign_in_gate.set()
        for thread in threads:
            thread.join(timeout=5)

        assert len(errors) == 4
        assert server.sign_in_calls == 1

    def test_superseded_refresh_is_discarded(self, server, sign_in):
        """A session installed while a refresh is in flight wins."""
        store = _store(server, sign_in)
        server.sign_in_gate = threading.Event()
        outcome = []

        thread = threading.Thread(target=lambda: outcome.append(store.refresh()))
        thread.start()
        time.sleep(0.1)
        injected = UserSessionInfo.from_token("injected")
        store.replace(injected)
        server.sign_in_gate.set()
        thread.join(timeout=5)

        assert outcome == [injected]
        assert store.peek() is injected


class TestFailureMapping:
    """Test how sign-in failures surface."""

    def test_wrong_password_is_invalid_credentials(self, server):
        store = _store(server, SignIn("api", "a@b.org", "wrong"))

        with pytest.raises(InvalidCredentials) as excinfo:
            store.current()

        assert excinfo.value.status_code == 404
        assert excinfo.value.retryable is False
        assert store.peek() is None

    @pytest.mark.parametrize("status", [400, 401, 403])
    def test_client_errors_are_invalid_credentials(self, server, sign_in, status):
        server.sign_in_status = status
        with pytest.raises(InvalidCredentials):
            _store(server, sign_in).current()

    def test_server_errors_propagate(self, server, sign_in):
        server.sign_in_status = 503
        with pytest.raises(ServerError):
            _store(server, sign_in).current()

    def test_transport_failure(self, sign_in):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        factory = BridgeTransportFactory(BASE_URL, USER_AGENT, transport=httpx.MockTransport(refuse))
        store = factory.build_session_store(sign_in)

        with pytest.raises(TransportError):
            store.current()

    def test_failed_refresh_does_not_block_next_attempt(self, server, sign_in):
        store = _store(server, sign_in)
        server.sign_in_status = 500
        with pytest.raises(ServerError):
            store.current()

        server.sign_in_status = None
        assert store.current().session_token == "token-2"

    def test_consent_required_session_accepted(self, sign_in):
        def handler(request):
            return httpx.Response(
                412,
                json={"sessionToken": "unconsented", "email": sign_in.email, "consented": False},
            )

        factory = BridgeTransportFactory(BASE_URL, USER_AGENT, transport=httpx.MockTransport(handler))
        session = factory.build_session_store(sign_in).current()

        assert session.session_token == "unconsented"
        assert session.consented is False

    def test_consent_required_without_session(self, sign_in):
        factory = BridgeTransportFactory(
            BASE_URL,
            USER_AGENT,
            transport=httpx.MockTransport(lambda r: httpx.Response(412, json={"message": "x"})),
        )
        with pytest.raises(InvalidCredentials):
            factory.build_session_store(sign_in).current()

    def test_missing_session_token_in_response(self, sign_in):
        factory = BridgeTransportFactory(
            BASE_URL, USER_AGENT, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        with pytest.raises(InvalidCredentials):
            factory.build_session_store(sign_in).current()


class TestTokenOnlyCredential:
    """Test credentials without a password."""

    def test_refresh_is_terminal(self):
        server = FakeBridgeServer()
        store = _store(server, SignIn("api", "a@b.org", session_token="only"))

        with pytest.raises(NoRefreshableCredential):
            store.refresh(rejected_token="only")
        assert server.sign_in_calls == 0

    def test_current_after_invalidate_is_terminal(self):
        server = FakeBridgeServer()
        store = _store(server, SignIn("api", "a@b.org", session_token="only"))
        store.invalidate()

        with pytest.raises(NoRefreshableCredential):
            store.current()


class TestGuardedInvalidate:
    """Test invalidation keyed on the rejected token."""

    def test_matching_token_cleared(self, server):
        store = _store(server, SignIn("api", "a@b.org", PASSWORD, session_token="seed"))

        assert store.invalidate(rejected_token="seed") is True
        assert store.peek() is None

    def test_newer_session_kept(self, server):
        store = _store(server, SignIn("api", "a@b.org", PASSWORD, session_token="seed"))
        fresh = UserSessionInfo.from_token("fresh")
        store.replace(fresh)
        version = store.version

        assert store.invalidate(rejected_token="seed") is False
        assert store.peek() is fresh
        assert store.version == version

    def test_unconditional_invalidate(self, server, sign_in):
        store = _store(server, sign_in)
        store.current()

        assert store.invalidate() is True
        assert store.peek() is None


@pytest.mark.parametrize("payload", [[{"sessionToken": "abc"}], "abc", 42])
def test_non_object_sign_in_body_is_invalid_credentials(sign_in, payload):
    factory = BridgeTransportFactory(
        BASE_URL, USER_AGENT, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload))
    )
    with pytest.raises(InvalidCredentials):
        factory.build_session_store(sign_in).current()
