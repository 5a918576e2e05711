"""Cancellation handles returned by listener registrations."""

from __future__ import annotations

import logging
from collections.abc import Callable

_logger = logging.getLogger(__name__)


class Subscription:
    """Opaque, idempotent cancellation token.

    Calling :meth:`cancel` (or the handle itself) runs the release callback
    exactly once; later calls are no-ops.
    """

    __slots__ = ("_release", "_name")

    def __init__(self, release: Callable[[], None], *, name: str = "") -> None:
        self._release: Callable[[], None] | None = release
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        """Whether the listener behind this handle is still registered."""
        return self._release is not None

    def cancel(self) -> None:
        release = self._release
        if release is None:
            return
        self._release = None
        _logger.debug("Releasing subscription %s", self._name or "<unnamed>")
        release()

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"Subscription({self._name!r}, {state})"
