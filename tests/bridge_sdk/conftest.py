"""Shared fixtures for the BridgeSDK test suite."""

from __future__ import annotations

import pytest

from bridge_fakes import BASE_URL, PASSWORD, USER_AGENT, FakeBridgeServer
from BridgeSDK.models import SignIn
from BridgeSDK.rest.classifier import reset_warning_registry
from BridgeSDK.rest.provider import ApiClientProvider


@pytest.fixture(autouse=True)
def _reset_warnings():
    reset_warning_registry()
    yield
    reset_warning_registry()


@pytest.fixture
def server() -> FakeBridgeServer:
    return FakeBridgeServer()


@pytest.fixture
def sign_in() -> SignIn:
    return SignIn(study="api", email="participant@example.org", password=PASSWORD)


@pytest.fixture
def provider(server: FakeBridgeServer):
    provider = ApiClientProvider.build(BASE_URL, USER_AGENT, "en,fr", transport=server.transport())
    yield provider
    provider.close()
