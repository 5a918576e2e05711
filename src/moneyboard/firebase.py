"""Firebase app handle: owns the HTTP session, auth service and store."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from moneyboard._transport import RestTransport
from moneyboard.auth import AuthStateListener, FirebaseAuth
from moneyboard.config import FirebaseOptions
from moneyboard.firestore import (
    ClientFactory,
    CollectionRef,
    ErrorCallback,
    FirestoreStore,
    SnapshotCallback,
    default_client_factory,
)
from moneyboard.models.user import AuthUser
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)


class AuthService(Protocol):
    """Identity provider surface used by the bootstrapper."""

    @property
    def current_user(self) -> AuthUser | None: ...

    def on_auth_state_changed(self, callback: AuthStateListener) -> Subscription: ...

    async def sign_in_with_custom_token(self, token: str) -> AuthUser: ...

    async def sign_in_anonymously(self) -> AuthUser: ...


class DocumentStore(Protocol):
    """Document store surface used by the collection subscriber."""

    def collection_ref(self, path: str) -> CollectionRef: ...

    def on_snapshot(self, ref: CollectionRef, on_next: SnapshotCallback, on_error: ErrorCallback) -> Subscription: ...


class AppHandle(Protocol):
    """Initialized app as returned by :func:`initialize_app`."""

    @property
    def options(self) -> FirebaseOptions: ...

    def auth(self) -> AuthService: ...

    def firestore(self) -> DocumentStore: ...

    async def close(self) -> None: ...


class FirebaseApp:
    """An initialized Firebase app.

    Usage::

        app = initialize_app(options)
        auth = get_auth(app)
        store = get_firestore(app)
        ...
        await app.close()
    """

    def __init__(
        self,
        options: FirebaseOptions,
        *,
        loop: asyncio.AbstractEventLoop,
        http_session: aiohttp.ClientSession | None = None,
        request_timeout: float = 15.0,
        watch_check_interval: float = 2.0,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self._options = options
        self._loop = loop
        self._external_session = http_session is not None
        self._http_session = http_session or aiohttp.ClientSession()
        self._transport = RestTransport(options.api_key, self._http_session, timeout=request_timeout)
        self._auth = FirebaseAuth(self._transport, loop=loop)
        self._store = FirestoreStore(
            options.project_id,
            loop=loop,
            auth=self._auth,
            client_factory=client_factory,
            check_interval=watch_check_interval,
        )

    @property
    def options(self) -> FirebaseOptions:
        return self._options

    def auth(self) -> FirebaseAuth:
        return self._auth

    def firestore(self) -> FirestoreStore:
        return self._store

    async def close(self) -> None:
        await self._store.close()
        if not self._external_session and not self._http_session.closed:
            await self._http_session.close()


def initialize_app(
    options: FirebaseOptions,
    *,
    http_session: aiohttp.ClientSession | None = None,
    request_timeout: float = 15.0,
    watch_check_interval: float = 2.0,
    client_factory: ClientFactory = default_client_factory,
) -> FirebaseApp:
    """Create the app for *options*. Must be called from a running event loop."""
    options.validate()
    loop = asyncio.get_running_loop()
    _logger.debug("Initializing Firebase app project=%s", options.project_id)
    return FirebaseApp(
        options,
        loop=loop,
        http_session=http_session,
        request_timeout=request_timeout,
        watch_check_interval=watch_check_interval,
        client_factory=client_factory,
    )


def get_auth(app: AppHandle) -> AuthService:
    return app.auth()


def get_firestore(app: AppHandle) -> DocumentStore:
    return app.firestore()
