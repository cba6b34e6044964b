"""Serialized read-modify-write access to the collection store."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ClassVar, Optional

from . import CollectionStore
from .errors import ValidationError
from .models import Collection

LOGGER = logging.getLogger(__name__)

Transform = Callable[[list[Collection]], list[Collection]]


@dataclass(slots=True)
class _Task:
    transform: Transform
    future: Future[list[Collection]]


class MutationQueue:
    """Run store transforms one at a time, in submission order.

    Each task reloads the store from disk, applies its transform to a private
    copy, and saves the result before the next task starts. A failing task
    rejects only its own future; the store is left untouched and later tasks
    keep running.
    """

    _instances: ClassVar[dict[Path, "MutationQueue"]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, store: CollectionStore) -> None:
        """Initialize a queue bound to ``store``.

        Prefer :meth:`for_store` so every caller in the process shares one queue
        per store file.

        Args:
            store: Store whose file this queue serializes.
        """
        self._store = store
        self._tasks: queue.Queue[Optional[_Task]] = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    @classmethod
    def for_store(cls, store: CollectionStore) -> "MutationQueue":
        """Return the process-wide queue for the store's backing file.

        Args:
            store: Store handle to serialize.

        Returns:
            MutationQueue: Shared queue instance for the resolved store path.
        """
        key = store.path.expanduser().resolve()
        with cls._instances_lock:
            instance = cls._instances.get(key)
            if instance is None or instance.closed:
                instance = cls(store)
                cls._instances[key] = instance
            return instance

    @property
    def store(self) -> CollectionStore:
        """Return the store serialized by this queue."""
        return self._store

    @property
    def closed(self) -> bool:
        """Return whether the queue has been shut down."""
        return self._closed

    def enqueue(self, transform: Transform) -> Future[list[Collection]]:
        """Schedule ``transform`` and return a future for the saved collections.

        Safe to call from any thread, including from a future callback or a
        transform running on the worker; the new task simply joins the queue.

        Args:
            transform: Callable receiving a fresh copy of the stored collections
                and returning the collections to persist.

        Returns:
            Future[list[Collection]]: Resolves with the persisted collections.

        Raises:
            RuntimeError: If the queue has been shut down.
        """
        future: Future[list[Collection]] = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("MutationQueue has been shut down.")
            self._ensure_worker()
            self._tasks.put(_Task(transform=transform, future=future))
        return future

    def submit_and_wait(self, transform: Transform, timeout: float | None = None) -> list[Collection]:
        """Enqueue ``transform`` and block until it has been applied.

        Raises:
            Exception: Whatever the transform or the store raised for this task.
        """
        return self.enqueue(transform).result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks and let the worker drain what is already queued."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            self._tasks.put(None)
        key = self._store.path.expanduser().resolve()
        with self._instances_lock:
            if self._instances.get(key) is self:
                del self._instances[key]
        if wait and worker is not None and worker is not threading.current_thread():
            worker.join()

    def __enter__(self) -> "MutationQueue":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(
            target=self._run,
            name=f"modelshelf-mutations[{self._store.path.name}]",
            daemon=True,
        )
        self._worker.start()

    def _run(self) -> None:
        while True:
            task = self._tasks.get()
            if task is None:
                break
            if not task.future.set_running_or_notify_cancel():
                continue
            try:
                result = self._apply(task.transform)
            except Exception as exc:
                LOGGER.info("Collection mutation rejected: %s", exc)
                task.future.set_exception(exc)
            else:
                task.future.set_result(result)

    def _apply(self, transform: Transform) -> list[Collection]:
        current = [collection.model_copy(deep=True) for collection in self._store.load()]
        updated = transform(current)
        if updated is None:
            raise TypeError("Collection transforms must return the updated collection list.")
        updated = list(updated)

        seen: set[str] = set()
        for collection in updated:
            if collection.id in seen:
                raise ValidationError(f"Duplicate collection id in transform result: {collection.id}")
            seen.add(collection.id)

        self._store.save(updated)
        return updated


__all__ = ["MutationQueue", "Transform"]
