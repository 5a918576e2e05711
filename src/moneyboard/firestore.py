"""Cloud Firestore store handle with streaming collection listeners."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from google.auth.credentials import AnonymousCredentials
from google.cloud import firestore
from google.oauth2.credentials import Credentials

from moneyboard._watch import RawDocument, SnapshotWatchRuntime, WatchTarget
from moneyboard.auth import FirebaseAuth
from moneyboard.exceptions import SubscriptionError
from moneyboard.subscription import Subscription

_logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[RawDocument], datetime | None], None]
ErrorCallback = Callable[[SubscriptionError], None]

#: Builds a Firestore client for a project, authorized with a Firebase ID
#: token (``None`` means unauthenticated access).
ClientFactory = Callable[[str, str | None], Any]


def default_client_factory(project_id: str, id_token: str | None) -> firestore.Client:
    credentials = Credentials(token=id_token) if id_token else AnonymousCredentials()
    return firestore.Client(project=project_id, credentials=credentials)


@dataclass(frozen=True)
class CollectionRef:
    """Validated collection path, e.g. ``/artifacts/app/public/data/expenses``."""

    path: str

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.path.strip("/").split("/"))

    @property
    def relative_path(self) -> str:
        return "/".join(self.segments)


def _shutdown_stream(runtime: SnapshotWatchRuntime | None, client: Any) -> None:
    # Watch.unsubscribe joins the consumer thread; keep it off the loop.
    if runtime is not None:
        runtime.stop()
    if client is not None:
        client.close()


class _SnapshotListener:
    """One attached listener; lives until cancelled or failed.

    Each listener owns its Firestore client. Both the watch stream and the
    client are shut down on a worker thread once the listener is closed.
    """

    def __init__(
        self,
        store: FirestoreStore,
        ref: CollectionRef,
        on_next: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._store = store
        self._ref = ref
        self._on_next = on_next
        self._on_error = on_error
        self._client: Any = None
        self._runtime: SnapshotWatchRuntime | None = None
        self._task: asyncio.Task[None] | None = None
        self._starting = False
        self._done = False

    def open(self) -> None:
        self._task = self._store.loop.create_task(self._run(), name=f"moneyboard-watch:{self._ref.path}")

    async def _run(self) -> None:
        loop = self._store.loop
        try:
            id_token = await self._store.auth.get_id_token() if self._store.auth is not None else None
            if self._done:
                return
            client = self._store.client_factory(self._store.project_id, id_token)
            self._client = client
            target: WatchTarget = client.collection(self._ref.relative_path)
            runtime = SnapshotWatchRuntime(loop=loop, on_documents=self._deliver, logger=_logger)
            self._runtime = runtime
            self._starting = True
            try:
                await loop.run_in_executor(None, runtime.start, target)
            finally:
                self._starting = False
        except Exception as exc:
            _logger.error("Attaching snapshot listener to %s failed: %s", self._ref.path, exc)
            self._fail(SubscriptionError(f"Failed to attach listener to {self._ref.path}: {exc}", path=self._ref.path))
            self._release()
            return

        if self._done:
            # Cancelled while the stream was being opened.
            self._release()
            return

        while not self._done:
            await asyncio.sleep(self._store.check_interval)
            if self._done:
                return
            if not runtime.is_alive:
                _logger.error("Snapshot listener for %s closed by the server", self._ref.path)
                self._fail(
                    SubscriptionError(f"Snapshot listener for {self._ref.path} closed unexpectedly", path=self._ref.path)
                )
                return

    def _deliver(self, documents: list[RawDocument], read_time: datetime | None) -> None:
        if self._done:
            return
        self._on_next(documents, read_time)

    def _fail(self, error: SubscriptionError) -> None:
        if self._done:
            return
        self._close()
        self._on_error(error)

    def _close(self) -> None:
        self._done = True
        self._store.forget(self)
        if not self._starting:
            self._release()

    def _release(self) -> None:
        runtime, client = self._runtime, self._client
        self._runtime = None
        self._client = None
        if runtime is None and client is None:
            return
        self._store.shutdown_in_background(runtime, client)

    def cancel(self) -> None:
        if self._done:
            return
        self._close()
        task = self._task
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not None and not self._starting and task is not current:
            task.cancel()


class FirestoreStore:
    """Store handle bound to one Firebase app.

    Listeners authorize with the auth service's current ID token at attach
    time (anonymous credentials when nobody is signed in).
    """

    def __init__(
        self,
        project_id: str,
        *,
        loop: asyncio.AbstractEventLoop,
        auth: FirebaseAuth | None = None,
        client_factory: ClientFactory = default_client_factory,
        check_interval: float = 2.0,
    ) -> None:
        self.project_id = project_id
        self.loop = loop
        self.auth = auth
        self.client_factory = client_factory
        self.check_interval = check_interval
        self._listeners: set[_SnapshotListener] = set()
        self._shutdowns: set[asyncio.Future[None]] = set()

    def collection_ref(self, path: str) -> CollectionRef:
        """Validate *path* as a collection path (odd number of segments)."""
        ref = CollectionRef(path)
        segments = ref.segments
        if not path.strip("/") or any(not seg for seg in segments) or len(segments) % 2 == 0:
            raise ValueError(f"Not a collection path: {path!r}")
        return ref

    def on_snapshot(
        self,
        ref: CollectionRef,
        on_next: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Stream the full collection at *ref*.

        *on_next* receives every document in provider order after each
        server-acknowledged change; *on_error* is called at most once, after
        which the listener is detached. Both run on the event loop.
        """
        listener = _SnapshotListener(self, ref, on_next, on_error)
        self._listeners.add(listener)
        _logger.debug("Opening snapshot listener on %s", ref.path)
        listener.open()
        return Subscription(listener.cancel, name=f"snapshot:{ref.path}")

    def forget(self, listener: _SnapshotListener) -> None:
        self._listeners.discard(listener)

    def shutdown_in_background(self, runtime: SnapshotWatchRuntime | None, client: Any) -> None:
        """Stop a watch stream and close its client on the default executor."""
        future = self.loop.run_in_executor(None, _shutdown_stream, runtime, client)
        self._shutdowns.add(future)
        future.add_done_callback(self._shutdown_done)

    def _shutdown_done(self, future: asyncio.Future[None]) -> None:
        self._shutdowns.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _logger.warning("Closing Firestore stream failed: %s", exc)

    async def close(self) -> None:
        """Cancel every listener and wait for their streams to shut down."""
        for listener in list(self._listeners):
            listener.cancel()
        pending = list(self._shutdowns)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
