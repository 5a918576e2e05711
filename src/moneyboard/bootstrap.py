"""Identity bootstrapper: one authenticated-or-anonymous subject per process."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum

from moneyboard.config import DashboardConfig
from moneyboard.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InitializationError,
    MoneyboardError,
)
from moneyboard.firebase import AppHandle, AuthService, DocumentStore, get_auth, get_firestore, initialize_app
from moneyboard.models.user import AuthUser
from moneyboard.session import Session
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)

AppFactory = Callable[[DashboardConfig], AppHandle]


def default_app_factory(config: DashboardConfig) -> AppHandle:
    return initialize_app(
        config.validate(),
        request_timeout=config.request_timeout,
        watch_check_interval=config.watch_check_interval,
    )


class BootstrapState(StrEnum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"


class IdentityBootstrapper:
    """Establishes the identity session and signals readiness.

    The auth-state stream is the source of truth: every event sets the
    session's subject (the signed-in uid, or ``"anonymous"``) and marks it
    ready. An event without a signed-in user also starts a sign-in in the
    background, with the custom token when one is configured, anonymously
    otherwise. Its completion arrives as another auth-state event.

    Parameters
    ----------
    app_factory : callable
        Builds the app handle from the config. Defaults to
        :func:`moneyboard.firebase.initialize_app`.
    on_session : callable, optional
        Called with the new :class:`Session` after every auth-state event.
    on_error : callable, optional
        Called with an :class:`AuthenticationError` when a background
        sign-in fails.
    """

    def __init__(
        self,
        *,
        app_factory: AppFactory = default_app_factory,
        on_session: Callable[[Session], None] | None = None,
        on_error: Callable[[AuthenticationError], None] | None = None,
    ) -> None:
        self._app_factory = app_factory
        self._on_session = on_session
        self._on_error = on_error
        self._state = BootstrapState.IDLE
        self._session = Session()
        self._app: AppHandle | None = None
        self._auth: AuthService | None = None
        self._store: DocumentStore | None = None
        self._token: str | None = None
        self._registration: Subscription | None = None
        self._sign_in_task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def session(self) -> Session:
        return self._session

    @property
    def app(self) -> AppHandle | None:
        return self._app

    @property
    def store(self) -> DocumentStore | None:
        return self._store

    def start(self, config: DashboardConfig | None, token: str | None = None) -> Subscription:
        """Initialize the app and register the auth-state listener.

        Parameters
        ----------
        config : DashboardConfig or None
            Provider configuration; ``None`` counts as missing.
        token : str, optional
            Custom token overriding ``config.initial_auth_token``.

        Returns
        -------
        Subscription
            Deregistration handle; cancelling it detaches the auth-state
            listener and abandons any in-flight sign-in.

        Raises
        ------
        ConfigurationError
            Configuration missing or invalid. No SDK call was made.
        InitializationError
            Creating the app, auth service or store failed.
        """
        if self._state is not BootstrapState.IDLE:
            raise MoneyboardError(f"Bootstrapper already started (state={self._state})")

        try:
            if config is None:
                raise ConfigurationError("Firebase configuration is missing.")
            config.validate()
        except ConfigurationError:
            self._state = BootstrapState.FAILED
            raise

        self._token = token if token is not None else config.initial_auth_token

        try:
            app = self._app_factory(config)
            auth = get_auth(app)
            store = get_firestore(app)
        except Exception as exc:
            self._state = BootstrapState.FAILED
            _logger.exception("Error during Firebase initialization")
            raise InitializationError("Failed to initialize Firebase services.") from exc

        self._app = app
        self._auth = auth
        self._store = store
        self._state = BootstrapState.AUTHENTICATING

        try:
            self._registration = auth.on_auth_state_changed(self._on_auth_state)
        except Exception as exc:
            self._state = BootstrapState.FAILED
            _logger.exception("Registering the auth-state listener failed")
            raise InitializationError("Failed to initialize Firebase services.") from exc

        return Subscription(self._stop, name="identity-bootstrapper")

    def _stop(self) -> None:
        self._stopped = True
        registration = self._registration
        self._registration = None
        if registration is not None:
            registration.cancel()
        task = self._sign_in_task
        self._sign_in_task = None
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Auth-state handling
    # ------------------------------------------------------------------

    def _on_auth_state(self, user: AuthUser | None) -> None:
        if self._stopped or self._auth is None:
            return

        if user is None:
            self._request_sign_in()

        current = self._auth.current_user
        self._session = self._session.resolved(current.uid if current is not None else None)
        self._state = BootstrapState.READY
        _logger.info("User ID set: %s", self._session.subject_id)

        if self._on_session is not None:
            self._on_session(self._session)

    def _request_sign_in(self) -> None:
        task = self._sign_in_task
        if task is not None and not task.done():
            _logger.debug("Sign-in already in flight")
            return
        if self._token:
            _logger.info("No user signed in. Attempting custom-token sign-in.")
        else:
            _logger.info("No user signed in. Attempting anonymous sign-in.")
        self._sign_in_task = asyncio.get_running_loop().create_task(self._sign_in(), name="moneyboard-sign-in")

    async def _sign_in(self) -> None:
        auth = self._auth
        if auth is None:
            return
        try:
            if self._token:
                await auth.sign_in_with_custom_token(self._token)
            else:
                await auth.sign_in_anonymously()
        except MoneyboardError as exc:
            if self._stopped:
                _logger.debug("Sign-in failed after stop: %s", exc)
                return
            _logger.error("Sign-in failed: %s", exc)
            error = exc if isinstance(exc, AuthenticationError) else AuthenticationError(f"Sign-in failed: {exc}")
            if self._on_error is not None:
                self._on_error(error)
