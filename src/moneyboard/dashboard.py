"""Dashboard coordinator: drives the bootstrapper and the subscriber."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from moneyboard.bootstrap import AppFactory, IdentityBootstrapper, default_app_factory
from moneyboard.config import DashboardConfig
from moneyboard.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InitializationError,
    MoneyboardError,
    SubscriptionError,
)
from moneyboard.models.record import Snapshot
from moneyboard.models.view import DashboardState, DashboardView
from moneyboard.session import Session
from moneyboard.subscriber import LiveCollectionSubscriber
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)

INITIALIZATION_FAILED_MESSAGE = "Failed to initialize Firebase services."
SIGN_IN_FAILED_MESSAGE = "Failed to sign in."
FETCH_FAILED_MESSAGE = "Failed to fetch real-time data."

ViewListener = Callable[[DashboardView], None]


@dataclass(slots=True)
class _ViewWaiter:
    predicate: Callable[[DashboardView], bool]
    future: asyncio.Future[DashboardView]


class Dashboard:
    """Publishes :class:`DashboardView` updates for one collection.

    Usage::

        async with Dashboard(DashboardConfig.from_env()) as dashboard:
            dashboard.add_listener(print)
            view = await dashboard.wait_for_view(lambda v: v.state == "subscribed", timeout=30)

    Errors never escape :meth:`start`; they move the dashboard into a
    terminal error state carrying a user-visible message.
    """

    def __init__(
        self,
        config: DashboardConfig | None,
        *,
        app_factory: AppFactory = default_app_factory,
    ) -> None:
        self._config = config
        self._collection_path = config.collection_path if config is not None else ""
        self._bootstrapper = IdentityBootstrapper(
            app_factory=app_factory,
            on_session=self._on_session,
            on_error=self._on_auth_error,
        )
        self._subscriber = LiveCollectionSubscriber(
            on_snapshot=self._on_snapshot,
            on_error=self._on_subscription_error,
        )
        self._state = DashboardState.IDLE
        self._error: str | None = None
        self._view = DashboardView(collection_path=self._collection_path)
        self._listeners: list[ViewListener] = []
        self._waiters: list[_ViewWaiter] = []
        self._auth_registration: Subscription | None = None
        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Dashboard:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def view(self) -> DashboardView:
        return self._view

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def session(self) -> Session:
        return self._bootstrapper.session

    @property
    def snapshot(self) -> Snapshot:
        return self._subscriber.snapshot

    def add_listener(self, listener: ViewListener) -> Subscription:
        """Register a presentation listener for future views."""
        self._listeners.append(listener)

        def _release() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_release, name="dashboard-view")

    def start(self) -> None:
        """Start authentication. Must be called from a running event loop."""
        if self._started:
            return
        self._started = True
        self._state = DashboardState.AUTHENTICATING
        try:
            self._auth_registration = self._bootstrapper.start(self._config)
        except ConfigurationError as exc:
            self._fail(DashboardState.AUTH_ERROR, str(exc), exc)
            return
        except InitializationError as exc:
            self._fail(DashboardState.AUTH_ERROR, INITIALIZATION_FAILED_MESSAGE, exc)
            return
        self._publish()

    async def wait_for_view(
        self,
        predicate: Callable[[DashboardView], bool],
        *,
        timeout: float | None = None,
    ) -> DashboardView | None:
        """Wait until a published view satisfies *predicate*.

        Returns the matching view, or ``None`` on timeout.
        """
        if predicate(self._view):
            return self._view
        future: asyncio.Future[DashboardView] = asyncio.get_running_loop().create_future()
        waiter = _ViewWaiter(predicate=predicate, future=future)
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            return None
        finally:
            with contextlib.suppress(ValueError):
                self._waiters.remove(waiter)

    async def close(self) -> None:
        """Detach every listener and release the app."""
        if self._closed:
            return
        self._closed = True
        self._subscriber.close()
        registration = self._auth_registration
        self._auth_registration = None
        if registration is not None:
            registration.cancel()
        app = self._bootstrapper.app
        if app is not None:
            await app.close()
        for waiter in self._waiters:
            if not waiter.future.done():
                waiter.future.cancel()
        self._waiters.clear()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_session(self, _session: Session) -> None:
        self._reconcile()

    def _on_auth_error(self, error: AuthenticationError) -> None:
        self._fail(DashboardState.AUTH_ERROR, SIGN_IN_FAILED_MESSAGE, error)

    def _on_snapshot(self, _snapshot: Snapshot) -> None:
        if self._closed:
            return
        self._publish()

    def _on_subscription_error(self, error: SubscriptionError) -> None:
        self._fail(DashboardState.SUBSCRIPTION_ERROR, FETCH_FAILED_MESSAGE, error)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _reconcile(self) -> None:
        if self._closed:
            return
        if not self._state.is_error:
            session = self._bootstrapper.session
            attached = self._subscriber.reconcile(session, self._bootstrapper.store, self._collection_path)
            if self._state.is_error:
                # The attach itself failed and already published the error.
                return
            if attached:
                self._state = DashboardState.SUBSCRIBED
            elif session.is_ready:
                self._state = DashboardState.READY
            else:
                self._state = DashboardState.AUTHENTICATING
        self._publish()

    def _fail(self, state: DashboardState, message: str, error: MoneyboardError) -> None:
        if self._state.is_error:
            _logger.error("Further error after %s: %s", self._state, error)
            return
        _logger.error("%s (%s: %s)", message, type(error).__name__, error)
        self._state = state
        self._error = message
        if state is DashboardState.AUTH_ERROR:
            self._subscriber.close()
        self._publish()

    def _publish(self) -> None:
        if self._closed:
            return
        view = DashboardView(
            state=self._state,
            session=self._bootstrapper.session,
            snapshot=self._subscriber.snapshot,
            error=self._error,
            collection_path=self._collection_path,
        )
        self._view = view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                _logger.exception("Dashboard view listener failed")
        for waiter in list(self._waiters):
            if not waiter.future.done() and waiter.predicate(view):
                waiter.future.set_result(view)
