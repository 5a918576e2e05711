from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pytest

from moneyboard._watch import RawDocument
from moneyboard.config import DashboardConfig, FirebaseOptions
from moneyboard.exceptions import MoneyboardError, SubscriptionError
from moneyboard.firestore import CollectionRef
from moneyboard.models.user import AuthUser
from moneyboard.subscription import Subscription


@dataclass
class FakeListener:
    path: str
    on_next: Callable[[list[RawDocument], datetime | None], None]
    on_error: Callable[[SubscriptionError], None]
    cancel_count: int = 0

    def release(self) -> None:
        self.cancel_count += 1

    def push(self, documents: list[tuple[str, dict[str, Any]]], read_time: datetime | None = None) -> None:
        # Delivers even after cancellation, like a late provider callback.
        self.on_next([RawDocument(id=doc_id, data=data) for doc_id, data in documents], read_time)

    def fail(self, message: str = "permission denied") -> None:
        self.on_error(SubscriptionError(message, path=self.path))


@dataclass
class FakeStore:
    listeners: list[FakeListener] = field(default_factory=list)

    def collection_ref(self, path: str) -> CollectionRef:
        if len(path.strip("/").split("/")) % 2 == 0:
            raise ValueError(f"Not a collection path: {path!r}")
        return CollectionRef(path)

    def on_snapshot(self, ref: CollectionRef, on_next: Any, on_error: Any) -> Subscription:
        listener = FakeListener(ref.path, on_next, on_error)
        self.listeners.append(listener)
        return Subscription(listener.release, name=f"fake:{ref.path}")

    @property
    def latest(self) -> FakeListener:
        return self.listeners[-1]


@dataclass
class FakeAuth:
    calls: list[str] = field(default_factory=list)
    current_user: AuthUser | None = None
    sign_in_error: MoneyboardError | None = None
    listeners: list[Callable[[AuthUser | None], None]] = field(default_factory=list)
    anonymous_uid: str = "anon-uid-1"
    token_uid: str = "token-uid-1"

    def on_auth_state_changed(self, callback: Callable[[AuthUser | None], None]) -> Subscription:
        self.calls.append("on_auth_state_changed")
        self.listeners.append(callback)
        asyncio.get_running_loop().call_soon(self._fire, callback, self.current_user)

        def _release() -> None:
            if callback in self.listeners:
                self.listeners.remove(callback)

        return Subscription(_release, name="fake-auth")

    def _fire(self, callback: Callable[[AuthUser | None], None], user: AuthUser | None) -> None:
        if callback in self.listeners:
            callback(user)

    def set_user(self, user: AuthUser | None) -> None:
        self.current_user = user
        loop = asyncio.get_running_loop()
        for callback in list(self.listeners):
            loop.call_soon(self._fire, callback, user)

    async def sign_in_anonymously(self) -> AuthUser:
        self.calls.append("sign_in_anonymously")
        if self.sign_in_error is not None:
            raise self.sign_in_error
        user = AuthUser(uid=self.anonymous_uid, is_anonymous=True)
        self.set_user(user)
        return user

    async def sign_in_with_custom_token(self, token: str) -> AuthUser:
        self.calls.append(f"sign_in_with_custom_token:{token}")
        if self.sign_in_error is not None:
            raise self.sign_in_error
        user = AuthUser(uid=self.token_uid)
        self.set_user(user)
        return user


@dataclass
class FakeApp:
    options: FirebaseOptions
    auth_service: FakeAuth = field(default_factory=FakeAuth)
    store: FakeStore = field(default_factory=FakeStore)
    closed: bool = False

    def auth(self) -> FakeAuth:
        return self.auth_service

    def firestore(self) -> FakeStore:
        return self.store

    async def close(self) -> None:
        self.closed = True


async def drain(rounds: int = 10) -> None:
    """Let call_soon callbacks and short tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def options() -> FirebaseOptions:
    return FirebaseOptions(
        api_key="test-api-key",
        project_id="expense-tracker-test",
        auth_domain="expense-tracker-test.firebaseapp.com",
        app_id="1:123:web:abc",
    )


@pytest.fixture
def config(options: FirebaseOptions) -> DashboardConfig:
    return DashboardConfig(firebase=options, application_id="test-app")


@pytest.fixture
def fake_app(options: FirebaseOptions) -> FakeApp:
    return FakeApp(options=options)


@pytest.fixture
def app_factory(fake_app: FakeApp) -> Callable[[DashboardConfig], FakeApp]:
    calls: list[DashboardConfig] = []

    def factory(cfg: DashboardConfig) -> FakeApp:
        calls.append(cfg)
        return fake_app

    factory.calls = calls  # type: ignore[attr-defined]
    return factory
