"""Internal Firestore watch runtime.

``google-cloud-firestore`` runs each ``on_snapshot`` stream on its own
background thread. This runtime converts every delivery to plain data on
that thread and hands it to the asyncio loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True)
class RawDocument:
    """One document of a watch delivery, detached from the SDK objects."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


class WatchHandle(Protocol):
    """The part of ``google.cloud.firestore_v1.watch.Watch`` used here."""

    @property
    def is_active(self) -> bool: ...

    def unsubscribe(self) -> None: ...


class WatchTarget(Protocol):
    """Anything with Firestore's ``on_snapshot(callback)`` (collection or query)."""

    def on_snapshot(self, callback: Callable[..., None]) -> WatchHandle: ...


DocumentsCallback = Callable[[list[RawDocument], datetime | None], None]


def to_raw_documents(docs: Sequence[Any]) -> list[RawDocument]:
    """Convert SDK ``DocumentSnapshot`` objects, keeping their order."""
    result: list[RawDocument] = []
    for doc in docs:
        data = doc.to_dict() if getattr(doc, "exists", True) else None
        result.append(RawDocument(id=str(doc.id), data=dict(data or {})))
    return result


class SnapshotWatchRuntime:
    """Threaded Firestore watch that emits document lists onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_documents: DocumentsCallback,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_documents = on_documents
        self._logger = logger or logging.getLogger(__name__)
        self._watch: WatchHandle | None = None
        self._running = False

    @property
    def is_alive(self) -> bool:
        """Whether the underlying stream is still delivering."""
        watch = self._watch
        return self._running and watch is not None and bool(watch.is_active)

    def start(self, target: WatchTarget) -> None:
        """Open the watch stream on *target*."""
        self.stop()

        def on_snapshot(docs: Sequence[Any], _changes: Any, read_time: datetime | None) -> None:
            try:
                documents = to_raw_documents(docs)
            except Exception:
                self._logger.debug("Watch delivery conversion failed", exc_info=True)
                return
            self._logger.debug("Watch delivered %d documents read_time=%s", len(documents), read_time)
            if self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._on_documents, documents, read_time)

        self._watch = target.on_snapshot(on_snapshot)
        self._running = True
        self._logger.debug("Watch stream started")

    def stop(self) -> None:
        """Close the current watch stream, if any.

        Blocks while the SDK joins its consumer thread; call it from a worker
        thread, never from the event loop.
        """
        watch = self._watch
        self._watch = None
        self._running = False
        if watch is None:
            return
        watch.unsubscribe()
        self._logger.debug("Watch stream stopped")
