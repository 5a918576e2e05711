"""Firebase Auth service: current user plus an auth-state stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from moneyboard._api import identity as _identity_api
from moneyboard._transport import Transport
from moneyboard.models.user import AuthUser
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)

AuthStateListener = Callable[[AuthUser | None], None]


class _Registration:
    __slots__ = ("callback", "alive")

    def __init__(self, callback: AuthStateListener) -> None:
        self.callback = callback
        self.alive = True


class FirebaseAuth:
    """Auth service bound to one Firebase app.

    Listener semantics follow the Firebase client SDKs: a newly registered
    listener is called once with the current user (possibly ``None``) on the
    next loop iteration, then again after every sign-in or sign-out. All
    calls happen on the event loop, one at a time.
    """

    def __init__(self, transport: Transport, *, loop: asyncio.AbstractEventLoop) -> None:
        self._transport = transport
        self._loop = loop
        self._current_user: AuthUser | None = None
        self._listeners: list[_Registration] = []

    @property
    def current_user(self) -> AuthUser | None:
        return self._current_user

    # ------------------------------------------------------------------
    # Auth-state stream
    # ------------------------------------------------------------------

    def on_auth_state_changed(self, callback: AuthStateListener) -> Subscription:
        """Register *callback* and return a handle that detaches it."""
        registration = _Registration(callback)
        self._listeners.append(registration)
        self._loop.call_soon(self._deliver, registration, self._current_user)

        def _release() -> None:
            registration.alive = False
            if registration in self._listeners:
                self._listeners.remove(registration)

        return Subscription(_release, name="auth-state")

    def _deliver(self, registration: _Registration, user: AuthUser | None) -> None:
        if not registration.alive:
            return
        try:
            registration.callback(user)
        except Exception:
            _logger.exception("Auth-state listener failed")

    def _set_current_user(self, user: AuthUser | None) -> None:
        previous = self._current_user
        self._current_user = user
        if previous is not None and user is not None and previous.uid == user.uid:
            # Token refresh only; the auth state itself did not change.
            return
        _logger.debug("Auth state changed uid=%s", user.uid if user is not None else None)
        for registration in list(self._listeners):
            self._loop.call_soon(self._deliver, registration, user)

    # ------------------------------------------------------------------
    # Sign-in / sign-out
    # ------------------------------------------------------------------

    async def sign_in_with_custom_token(self, token: str) -> AuthUser:
        user = await _identity_api.sign_in_with_custom_token(self._transport, token)
        _logger.debug("Signed in with custom token uid=%s", user.uid)
        self._set_current_user(user)
        return user

    async def sign_in_anonymously(self) -> AuthUser:
        user = await _identity_api.sign_in_anonymously(self._transport)
        _logger.debug("Signed in anonymously uid=%s", user.uid)
        self._set_current_user(user)
        return user

    def sign_out(self) -> None:
        if self._current_user is None:
            return
        self._set_current_user(None)

    async def get_id_token(self, *, force_refresh: bool = False) -> str | None:
        """Current user's ID token, refreshed first when expired.

        Returns ``None`` when nobody is signed in.
        """
        user = self._current_user
        if user is None:
            return None
        if force_refresh or user.is_token_expired:
            refreshed = await _identity_api.refresh_id_token(self._transport, user)
            if self._current_user is user:
                self._set_current_user(refreshed)
            return refreshed.id_token
        return user.id_token
