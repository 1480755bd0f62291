"""
File-backed document store.

Each collection is one JSON file holding a list of documents. Every mutation
goes through ``CollectionStore.mutate`` which serialises writers per
collection, re-reads the current state, applies a function and persists the
result with an atomic rename.
"""
import json
import os
import re
import tempfile
import threading
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from ..errors import StorageCorruption
from .locks import ReadWriteLock


logger = structlog.get_logger(__name__)

Document = Dict[str, Any]

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


class CollectionStore:
    def __init__(self, data_dir: str | Path, lock_timeout_s: Optional[float] = 10.0):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.lock_timeout_s = lock_timeout_s
        self._locks: Dict[str, ReadWriteLock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, collection: str) -> Path:
        if not _NAME_RE.match(collection):
            raise ValueError(f"Invalid collection name: {collection!r}")
        return self.data_dir / f"{collection}.json"

    def _lock_for(self, collection: str) -> ReadWriteLock:
        with self._locks_guard:
            lock = self._locks.get(collection)
            if lock is None:
                lock = self._locks[collection] = ReadWriteLock()
            return lock

    # ---------- raw file access (callers hold the lock) ----------
    def _read(self, collection: str) -> Optional[List[Document]]:
        """Return the persisted documents, or None when the file does not exist."""
        path = self.path_for(collection)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageCorruption(f"Collection '{collection}' could not be read: {e}") from e
        try:
            docs = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageCorruption(
                f"Collection '{collection}' is not valid JSON",
                {"line": e.lineno, "column": e.colno},
            ) from e
        if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):
            raise StorageCorruption(f"Collection '{collection}' must be a list of objects")
        return docs

    def _write(self, collection: str, docs: List[Document]) -> None:
        path = self.path_for(collection)
        payload = json.dumps(docs, indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.data_dir), prefix=f".{collection}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    # ---------- public API ----------
    def load(self, collection: str) -> List[Document]:
        lock = self._lock_for(collection)
        with lock.read(self.lock_timeout_s, collection):
            docs = self._read(collection)
        if docs is not None:
            return docs
        with lock.write(self.lock_timeout_s, collection):
            docs = self._read(collection)
            if docs is None:
                self._write(collection, [])
                logger.info("collection_bootstrapped", collection=collection)
                docs = []
        return docs

    def mutate(
        self,
        collection: str,
        fn: Callable[..., Any],
        depends_on: Sequence[str] = (),
    ) -> Any:
        """Apply ``fn`` to the current documents of ``collection`` and persist.

        ``fn`` receives the document list (and, when ``depends_on`` is given, a
        dict of read-only snapshots of those collections) and returns either
        the new list or a ``(new_list, result)`` tuple. Raising inside ``fn``
        leaves the collection untouched.

        Locks are taken in sorted collection-name order: a write lock on
        ``collection`` and read locks on ``depends_on``.
        """
        deps = [d for d in dict.fromkeys(depends_on) if d != collection]
        names = sorted([collection, *deps])
        deadline = None if self.lock_timeout_s is None else time.monotonic() + self.lock_timeout_s
        with ExitStack() as stack:
            for name in names:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                lock = self._lock_for(name)
                if name == collection:
                    stack.enter_context(lock.write(remaining, name))
                else:
                    stack.enter_context(lock.read(remaining, name))

            docs = self._read(collection)
            if docs is None:
                docs = []
            if deps:
                refs = {name: (self._read(name) or []) for name in deps}
                outcome = fn(docs, refs)
            else:
                outcome = fn(docs)

            if isinstance(outcome, tuple):
                new_docs, result = outcome
            else:
                new_docs, result = outcome, None
            if not isinstance(new_docs, list):
                raise TypeError(f"mutate() callback for '{collection}' must return a list")
            self._write(collection, new_docs)
            logger.debug("collection_written", collection=collection, count=len(new_docs))
            return result
