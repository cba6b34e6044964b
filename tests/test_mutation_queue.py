"""Mutation queue tests."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from pathlib import Path

import pytest

from modelshelf.state import Collection, CollectionNotFoundError, CollectionStore, StoreError, ValidationError
from modelshelf.state.queue import MutationQueue
from modelshelf.sync.mutations import CollectionDraft, delete_transform, upsert_transform


def _store(tmp_path: Path) -> CollectionStore:
    return CollectionStore(tmp_path / "data" / "collections.json")


def _append(collection_id: str):
    def _transform(collections: list[Collection]) -> list[Collection]:
        collections.append(Collection(id=collection_id, name=collection_id))
        return collections

    return _transform


def test_tasks_run_in_submission_order_with_cumulative_effect(tmp_path: Path) -> None:
    """Ensure each task sees every earlier task's result.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    with MutationQueue(_store(tmp_path)) as queue:
        futures = [queue.enqueue(_append(f"c{index}")) for index in range(10)]
        results = [future.result(timeout=10) for future in futures]

    for index, result in enumerate(results):
        assert [item.id for item in result] == [f"c{position}" for position in range(index + 1)]
    assert [item.id for item in _store(tmp_path).load()] == [f"c{index}" for index in range(10)]


def test_concurrent_submitters_lose_no_updates(tmp_path: Path) -> None:
    """Ensure tasks enqueued from many threads all land in the store.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        futures: list[Future[list[Collection]]] = []
        lock = threading.Lock()

        def _submit(prefix: str) -> None:
            for index in range(5):
                future = queue.enqueue(_append(f"{prefix}-{index}"))
                with lock:
                    futures.append(future)

        threads = [threading.Thread(target=_submit, args=(f"t{number}",)) for number in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        for future in futures:
            future.result(timeout=10)

    assert len(store.load()) == 20


def test_insert_then_delete_leaves_no_collection(tmp_path: Path) -> None:
    """Ensure a delete queued after an insert observes the insert.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        inserted = queue.enqueue(upsert_transform(CollectionDraft.build(name="X"), "col-x"))
        deleted = queue.enqueue(delete_transform("col-x"))
        assert [item.id for item in inserted.result(timeout=10)] == ["col-x"]
        assert deleted.result(timeout=10) == []

    assert store.load() == []


def test_failing_task_rejects_only_its_future(tmp_path: Path) -> None:
    """Ensure a failure leaves the store untouched and later tasks still run.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        first = queue.enqueue(_append("a"))

        def _explode(collections: list[Collection]) -> list[Collection]:
            collections.append(Collection(id="partial", name="partial"))
            raise RuntimeError("boom")

        failing = queue.enqueue(_explode)
        missing = queue.enqueue(delete_transform("does-not-exist"))
        last = queue.enqueue(_append("b"))

        first.result(timeout=10)
        with pytest.raises(RuntimeError, match="boom"):
            failing.result(timeout=10)
        with pytest.raises(CollectionNotFoundError):
            missing.result(timeout=10)
        assert [item.id for item in last.result(timeout=10)] == ["a", "b"]

    assert [item.id for item in store.load()] == ["a", "b"]


def test_duplicate_ids_are_rejected(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        queue.submit_and_wait(_append("dup"), timeout=10)
        with pytest.raises(ValidationError):
            queue.submit_and_wait(_append("dup"), timeout=10)

    assert [item.id for item in store.load()] == ["dup"]


def test_unreadable_store_layout_is_never_overwritten(tmp_path: Path) -> None:
    """Ensure a store file of unexpected shape fails the task and stays on disk as is.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    original = '{"items": [{"id": "keep", "name": "Keep"}]}'
    store.path.write_text(original, encoding="utf-8")

    with MutationQueue(store) as queue:
        with pytest.raises(StoreError):
            queue.submit_and_wait(_append("x"), timeout=10)

    assert store.path.read_text(encoding="utf-8") == original


def test_reentrant_enqueue_from_callback_does_not_deadlock(tmp_path: Path) -> None:
    """Ensure a future callback can enqueue follow-up work.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        scheduled = threading.Event()
        nested: list[Future[list[Collection]]] = []

        def _follow_up(_: Future[list[Collection]]) -> None:
            nested.append(queue.enqueue(_append("second")))
            scheduled.set()

        queue.enqueue(_append("first")).add_done_callback(_follow_up)

        assert scheduled.wait(timeout=10)
        assert [item.id for item in nested[0].result(timeout=10)] == ["first", "second"]


def test_transform_sees_fresh_disk_state(tmp_path: Path) -> None:
    """Ensure external writes between tasks are picked up on the next task.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = _store(tmp_path)
    with MutationQueue(store) as queue:
        queue.submit_and_wait(_append("a"), timeout=10)
        store.save([Collection(id="external", name="external")])
        result = queue.submit_and_wait(_append("b"), timeout=10)

    assert [item.id for item in result] == ["external", "b"]


def test_for_store_shares_one_queue_per_file(tmp_path: Path) -> None:
    first = MutationQueue.for_store(_store(tmp_path))
    second = MutationQueue.for_store(CollectionStore(tmp_path / "data" / ".." / "data" / "collections.json"))
    try:
        assert first is second
    finally:
        first.shutdown()

    assert MutationQueue.for_store(_store(tmp_path)) is not first


def test_enqueue_after_shutdown_raises(tmp_path: Path) -> None:
    queue = MutationQueue(_store(tmp_path))
    queue.shutdown()

    with pytest.raises(RuntimeError):
        queue.enqueue(_append("late"))
