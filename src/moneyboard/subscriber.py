"""Live collection subscriber gated on the identity session."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import ValidationError

from moneyboard._watch import RawDocument
from moneyboard.exceptions import SubscriptionError
from moneyboard.firebase import DocumentStore
from moneyboard.models.record import EMPTY_SNAPSHOT, Record, Snapshot
from moneyboard.session import Session
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ActivationKey:
    """Conditions a listener is attached under.

    Two keys are equal when every condition matches; the store handle is
    compared by identity.
    """

    is_ready: bool
    store: DocumentStore | None
    subject_id: str
    collection_path: str

    @property
    def is_satisfied(self) -> bool:
        return self.is_ready and self.store is not None and bool(self.subject_id) and bool(self.collection_path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActivationKey):
            return NotImplemented
        return (
            self.is_ready == other.is_ready
            and self.store is other.store
            and self.subject_id == other.subject_id
            and self.collection_path == other.collection_path
        )

    def __hash__(self) -> int:
        return hash((self.is_ready, id(self.store), self.subject_id, self.collection_path))


class LiveCollectionSubscriber:
    """Streams ordered snapshots of one collection.

    :meth:`reconcile` is the single driver: whenever the activation key
    changes, the current listener is cancelled (exactly once) before a new
    one is attached, and a listener is attached only while the key is
    satisfied. A listener that reported an error stays detached until the
    key changes.

    Parameters
    ----------
    on_snapshot : callable, optional
        Called with each new :class:`Snapshot`.
    on_error : callable, optional
        Called with the :class:`SubscriptionError` of a failed listener.
    """

    def __init__(
        self,
        *,
        on_snapshot: Callable[[Snapshot], None] | None = None,
        on_error: Callable[[SubscriptionError], None] | None = None,
    ) -> None:
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._key: ActivationKey | None = None
        self._handle: Subscription | None = None
        self._generation = 0
        self._snapshot: Snapshot = EMPTY_SNAPSHOT
        self._error: SubscriptionError | None = None
        self._closed = False

    @property
    def snapshot(self) -> Snapshot:
        """Last delivered snapshot; kept after an error."""
        return self._snapshot

    @property
    def error(self) -> SubscriptionError | None:
        return self._error

    @property
    def is_attached(self) -> bool:
        return self._handle is not None

    def reconcile(self, session: Session, store: DocumentStore | None, collection_path: str) -> bool:
        """Bring the listener in line with the current conditions.

        Returns whether a listener is attached afterwards.
        """
        if self._closed:
            return False

        key = ActivationKey(
            is_ready=session.is_ready,
            store=store,
            subject_id=session.subject_id,
            collection_path=collection_path,
        )
        if key == self._key:
            return self.is_attached

        self._detach()
        self._key = key
        if not key.is_satisfied or store is None:
            _logger.debug(
                "Listener stays detached ready=%s store=%s subject=%r path=%r",
                key.is_ready,
                store is not None,
                key.subject_id,
                key.collection_path,
            )
            return False

        self._attach(store, collection_path)
        return self.is_attached

    def attach(self, store: DocumentStore, collection_path: str, *, session: Session) -> bool:
        """Attach to *collection_path* if *session* allows it; see :meth:`reconcile`."""
        return self.reconcile(session, store, collection_path)

    def close(self) -> None:
        """Detach for good. Later deliveries are ignored."""
        self._detach()
        self._closed = True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _attach(self, store: DocumentStore, collection_path: str) -> None:
        self._error = None
        self._generation += 1
        generation = self._generation
        try:
            ref = store.collection_ref(collection_path)
        except ValueError as exc:
            self._fail(generation, SubscriptionError(str(exc), path=collection_path))
            return

        _logger.info("Attaching real-time listener to %s", collection_path)

        def on_next(documents: list[RawDocument], read_time: datetime | None) -> None:
            self._deliver(generation, documents, read_time)

        def on_error(error: SubscriptionError) -> None:
            self._fail(generation, error)

        self._handle = store.on_snapshot(ref, on_next, on_error)

    def _detach(self) -> None:
        handle = self._handle
        self._handle = None
        # Invalidate callbacks bound to the old listener.
        self._generation += 1
        if handle is not None:
            _logger.debug("Detaching real-time listener %s", handle.name)
            handle.cancel()

    def _deliver(self, generation: int, documents: list[RawDocument], read_time: datetime | None) -> None:
        if generation != self._generation or self._closed:
            _logger.debug("Dropping stale snapshot delivery")
            return
        try:
            snapshot = Snapshot(
                records=tuple(Record.from_document(doc.id, doc.data) for doc in documents),
                read_time=read_time,
                sequence=self._snapshot.sequence + 1,
            )
        except ValidationError as exc:
            path = self._key.collection_path if self._key is not None else ""
            self._fail(generation, SubscriptionError(f"Malformed snapshot from {path}: {exc}", path=path))
            return

        self._snapshot = snapshot
        _logger.info("Fetched %d expense records.", len(snapshot))
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    def _fail(self, generation: int, error: SubscriptionError) -> None:
        if generation != self._generation or self._closed:
            _logger.debug("Dropping stale listener error: %s", error)
            return
        _logger.error("Snapshot listener error: %s", error)
        self._error = error
        self._detach()
        if self._on_error is not None:
            self._on_error(error)
