# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.cache",
#   "purpose": "Weak-value memoisation of service handles, transports and session stores.",
#   "sections": [
#     {
#       "id": "transportfactory",
#       "name": "TransportFactory",
#       "anchor": "class-transportfactory",
#       "kind": "class"
#     },
#     {
#       "id": "clientcache",
#       "name": "ClientCache",
#       "anchor": "class-clientcache",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Weak-value memoisation of service handles, transports and session stores.

**Design:**

Four maps, all ``weakref.WeakValueDictionary``:

    unauthenticated handles   service type            -> ServiceClient
    authenticated handles     (credential, type)      -> ServiceClient
    authenticated transports  credential              -> httpx.Client
    session stores            credential              -> SessionStore

A handle references its ``httpx.Client``; the client's staged transport
references the session attacher, which references the store.  As long as a
caller holds any handle for a credential, that credential's transport and store
stay alive and are shared by every other handle for an equal credential.  Once
the caller drops them all, the whole chain (including the session token) is
collected and the entries disappear on their own.

**Memory Management:**

No entry outlives its last external reference, so rotating or discarding
credentials never grows the cache.  A collected entry is rebuilt transparently
on the next lookup; callers only ever see a one-time rebuild cost.

**Thread Safety:**

Lookups and population run under one lock.  Construction does no network I/O
(handles, clients and stores are built lazily and sign in on first use), so
holding the lock while building keeps population atomic per key without
serialising any request.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import Optional, Protocol, Tuple, Type

import httpx

from BridgeSDK.models import SignIn
from BridgeSDK.rest.services import ServiceClient, ServiceT
from BridgeSDK.rest.session import SessionStore

__all__ = ["TransportFactory", "ClientCache"]

logger = logging.getLogger(__name__)


class TransportFactory(Protocol):
    """Builds the objects the cache memoises."""

    def build_unauthenticated_client(self) -> httpx.Client: ...

    def build_authenticated_client(self, store: SessionStore) -> httpx.Client: ...

    def build_session_store(self, sign_in: SignIn) -> SessionStore: ...


class ClientCache:
    """Thread-safe cache of service handles keyed by credential and service type."""

    def __init__(self, factory: TransportFactory) -> None:
        self._factory = factory
        self._lock = threading.RLock()
        self._unauthenticated_http: Optional[httpx.Client] = None
        self._unauthenticated: "weakref.WeakValueDictionary[type, ServiceClient]" = (
            weakref.WeakValueDictionary()
        )
        self._authenticated: "weakref.WeakValueDictionary[Tuple[SignIn, type], ServiceClient]" = (
            weakref.WeakValueDictionary()
        )
        self._clients: "weakref.WeakValueDictionary[SignIn, httpx.Client]" = (
            weakref.WeakValueDictionary()
        )
        self._stores: "weakref.WeakValueDictionary[SignIn, SessionStore]" = (
            weakref.WeakValueDictionary()
        )

    @property
    def unauthenticated_http(self) -> httpx.Client:
        """Shared unauthenticated ``httpx.Client``, built on first use and kept for the cache's life."""
        with self._lock:
            if self._unauthenticated_http is None:
                self._unauthenticated_http = self._factory.build_unauthenticated_client()
            return self._unauthenticated_http

    def get_unauthenticated(self, service_type: Type[ServiceT]) -> ServiceT:
        with self._lock:
            handle = self._unauthenticated.get(service_type)
            if handle is None:
                handle = service_type(self.unauthenticated_http)
                self._unauthenticated[service_type] = handle
                logger.debug(
                    "Built unauthenticated handle",
                    extra={"service": service_type.service_name()},
                )
            return handle  # type: ignore[return-value]

    def get_authenticated(self, service_type: Type[ServiceT], credential: SignIn) -> ServiceT:
        key = (credential, service_type)
        with self._lock:
            handle = self._authenticated.get(key)
            if handle is None:
                handle = service_type(self._authenticated_http(credential))
                self._authenticated[key] = handle
                logger.debug(
                    "Built authenticated handle",
                    extra={"service": service_type.service_name(), "study": credential.study},
                )
            return handle  # type: ignore[return-value]

    def session_store(self, credential: SignIn) -> SessionStore:
        """Return the one live store for ``credential``, creating it if needed."""
        with self._lock:
            store = self._stores.get(credential)
            if store is None:
                store = self._factory.build_session_store(credential)
                self._stores[credential] = store
            return store

    def authenticated_clients(self) -> Tuple[httpx.Client, ...]:
        with self._lock:
            return tuple(self._clients.values())

    def evict(self, service_type: type, credential: Optional[SignIn] = None) -> None:
        """Drop one handle entry; the next lookup builds a fresh handle."""
        with self._lock:
            if credential is None:
                self._unauthenticated.pop(service_type, None)
            else:
                self._authenticated.pop((credential, service_type), None)

    def clear(self) -> None:
        """Drop every handle and transport entry (stores stay with their holders)."""
        with self._lock:
            self._unauthenticated.clear()
            self._authenticated.clear()
            self._clients.clear()

    def _authenticated_http(self, credential: SignIn) -> httpx.Client:
        client = self._clients.get(credential)
        if client is None:
            client = self._factory.build_authenticated_client(self.session_store(credential))
            self._clients[credential] = client
        return client
