import json
import threading

import pytest

from backoffice.errors import StorageCorruption, StoreBusy
from backoffice.store import CollectionStore


def test_load_bootstraps_missing_collection(store):
    assert not store.path_for("widgets").exists()
    assert store.load("widgets") == []
    assert store.path_for("widgets").read_text(encoding="utf-8") == "[]"
    # second load reads the bootstrapped file
    assert store.load("widgets") == []


def test_mutate_persists_and_returns_result(store):
    def add(docs):
        return docs + [{"id": "a"}], "added"

    assert store.mutate("widgets", add) == "added"
    assert store.load("widgets") == [{"id": "a"}]
    on_disk = json.loads(store.path_for("widgets").read_text(encoding="utf-8"))
    assert on_disk == [{"id": "a"}]


def test_mutate_accepts_plain_list(store):
    assert store.mutate("widgets", lambda docs: docs + [{"id": "b"}]) is None
    assert store.load("widgets") == [{"id": "b"}]


def test_failed_mutation_leaves_collection_untouched(store):
    store.mutate("widgets", lambda docs: [{"id": "a"}])

    def boom(docs):
        docs.append({"id": "half"})
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        store.mutate("widgets", boom)
    assert store.load("widgets") == [{"id": "a"}]


def test_mutate_rejects_non_list_result(store):
    with pytest.raises(TypeError):
        store.mutate("widgets", lambda docs: {"id": "a"})


def test_no_temp_files_left_behind(store):
    store.mutate("widgets", lambda docs: [{"id": "a"}])
    leftovers = [p.name for p in store.data_dir.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_corrupt_file_raises_and_is_not_replaced(store):
    path = store.path_for("widgets")
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageCorruption):
        store.load("widgets")
    with pytest.raises(StorageCorruption):
        store.mutate("widgets", lambda docs: docs)
    assert path.read_text(encoding="utf-8") == "{not json"


def test_non_list_document_set_is_corruption(store):
    store.path_for("widgets").write_text('{"id": "a"}', encoding="utf-8")
    with pytest.raises(StorageCorruption):
        store.load("widgets")


def test_invalid_collection_name(store):
    with pytest.raises(ValueError):
        store.load("../etc/passwd")


def test_dependencies_are_passed_as_snapshots(store):
    store.mutate("parents", lambda docs: [{"id": "p1"}])

    def add_child(docs, refs):
        assert [d["id"] for d in refs["parents"]] == ["p1"]
        return docs + [{"id": "c1", "parent": "p1"}]

    store.mutate("children", add_child, depends_on=("parents",))
    assert store.load("children") == [{"id": "c1", "parent": "p1"}]


def test_lock_timeout_raises_store_busy(tmp_path):
    store = CollectionStore(tmp_path, lock_timeout_s=0.05)
    lock = store._lock_for("widgets")
    assert lock.acquire_write(1.0)
    try:
        with pytest.raises(StoreBusy):
            store.load("widgets")
        with pytest.raises(StoreBusy):
            store.mutate("widgets", lambda docs: docs)
    finally:
        lock.release_write()
    assert store.load("widgets") == []


def test_other_collections_do_not_block(tmp_path):
    store = CollectionStore(tmp_path, lock_timeout_s=0.05)
    lock = store._lock_for("widgets")
    assert lock.acquire_write(1.0)
    try:
        store.mutate("gadgets", lambda docs: [{"id": "g"}])
    finally:
        lock.release_write()
    assert store.load("gadgets") == [{"id": "g"}]


def test_concurrent_mutations_are_serialised(store):
    store.mutate("counter", lambda docs: [{"id": "n", "value": 0}])
    workers = 8
    barrier = threading.Barrier(workers)

    def bump():
        barrier.wait()
        for _ in range(10):
            store.mutate("counter", lambda docs: [{"id": "n", "value": docs[0]["value"] + 1}])

    threads = [threading.Thread(target=bump) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.load("counter")[0]["value"] == workers * 10


def test_crossed_dependencies_do_not_deadlock(store):
    store.mutate("left", lambda docs: [])
    store.mutate("right", lambda docs: [])
    barrier = threading.Barrier(2)
    errors = []

    def run(target, dep):
        barrier.wait()
        try:
            for _ in range(20):
                store.mutate(target, lambda docs, refs: docs, depends_on=(dep,))
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [
        threading.Thread(target=run, args=("left", "right")),
        threading.Thread(target=run, args=("right", "left")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert not any(t.is_alive() for t in threads)
    assert errors == []
