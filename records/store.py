"""
records/store.py -- File-backed JSON collections with per-collection locking.

Each collection is one self-describing JSON document (array or object) in the
data directory, pretty-printed so it can be inspected and restored by hand:

    data/users.json         []
    data/invitations.json   []
    data/audit.log          []

This is read-modify-write over shared documents, not row storage. Every
mutation reads the whole collection, changes it in memory and writes the whole
collection back, so correctness depends on that cycle being serialized per
collection. RecordStore owns one CollectionLock per collection name: a
re-entrant thread lock plus an advisory flock on a hidden `.<name>.lock` file
next to the document, so the API server and the admin CLI serialize against
each other too. transaction() holds the locks of every collection it touches
for the full cycle. Collections that are not involved proceed independently.

Read policy: availability over strictness. read() never raises for I/O or
parse failures -- it logs and returns the collection default. read_result()
exposes which path was taken (LOADED / DEFAULTED / RECOVERED) so callers and
tests can tell a missing document from a corrupt one.

Write policy: write() and append() report failure as False. transaction()
raises StorageError, because a half-applied transaction must surface as an
operation failure. A transaction never commits over a document whose read was
RECOVERED; that would silently replace corrupt-but-recoverable data with a
default.

Layer rule: no imports from api/ or auth/. Import from core/ is allowed.
"""

from __future__ import annotations

import copy
import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator, Mapping
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from core.errors import StorageError

logger = logging.getLogger("invitegate.records")

USERS = "users.json"
INVITATIONS = "invitations.json"
AUDIT_LOG = "audit.log"

DEFAULT_COLLECTIONS: dict[str, Any] = {
    USERS: [],
    INVITATIONS: [],
    AUDIT_LOG: [],
}


class ReadStatus(str, Enum):
    LOADED = "loaded"  # document parsed
    DEFAULTED = "defaulted"  # document absent
    RECOVERED = "recovered"  # read or parse failed; logged and suppressed


@dataclass
class ReadResult:
    """Outcome of a collection read. value is always usable."""

    value: Any
    status: ReadStatus
    error: str | None = None

    @property
    def recovered(self) -> bool:
        return self.status is ReadStatus.RECOVERED


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(value: Any) -> bytes:
    """Raises TypeError / ValueError for values JSON cannot represent."""
    return json.dumps(value, indent=2, ensure_ascii=False).encode("utf-8")


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


class CollectionLock:
    """Re-entrant lock for one collection, shared by threads and processes.

    The thread lock is taken first; only the outermost acquire in a thread
    opens the lock file and takes an exclusive flock on it, so nested use
    (append() calling write()) never blocks on itself. If the lock file cannot
    be opened (data directory missing or read-only) the lock degrades to the
    thread lock; any write in that state fails on its own.
    """

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._thread_lock = threading.RLock()
        self._depth = 0
        self._handle: Any = None

    def acquire(self) -> None:
        self._thread_lock.acquire()
        if self._depth == 0:
            try:
                self._handle = self._lock_file()
            except BaseException:
                self._thread_lock.release()
                raise
        self._depth += 1

    def release(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._handle is not None:
            try:
                fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
            finally:
                self._handle.close()
                self._handle = None
        self._thread_lock.release()

    def _lock_file(self) -> Any:
        try:
            handle = open(self.lock_path, "a+b")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("Cannot open lock file %s: %s", self.lock_path, exc)
            return None
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except OSError as exc:
            handle.close()
            logger.error("Cannot lock %s: %s", self.lock_path, exc)
            return None
        return handle

    def __enter__(self) -> CollectionLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class RecordStore:
    """Owned store of named JSON collections under one data directory.

    Usage:
        store = RecordStore("./data")
        store.initialize()
        users = store.read(USERS)
        with store.transaction(USERS, INVITATIONS) as tx:
            users = tx.read(USERS)
            users.append({...})
            tx.stage(USERS, users)
        store.append(AUDIT_LOG, {"type": "login", "username": "alice"})
    """

    def __init__(self, data_dir: str | Path, collections: Mapping[str, Any] | None = None) -> None:
        self.data_dir = Path(data_dir)
        self._defaults: dict[str, Any] = dict(DEFAULT_COLLECTIONS if collections is None else collections)
        self._locks: dict[str, CollectionLock] = {}
        self._guard = threading.Lock()

    @property
    def collections(self) -> list[str]:
        return list(self._defaults)

    def path_for(self, collection: str) -> Path:
        """Return the document path. Raises KeyError for unknown collections."""
        if collection not in self._defaults:
            raise KeyError(f"Unknown collection: {collection!r}")
        return self.data_dir / collection

    def default(self, collection: str) -> Any:
        """Return a fresh copy of the collection's documented default."""
        return copy.deepcopy(self._defaults[collection])

    def lock_for(self, collection: str) -> CollectionLock:
        path = self.path_for(collection)
        with self._guard:
            lk = self._locks.get(collection)
            if lk is None:
                lk = CollectionLock(path.with_name(f".{collection}.lock"))
                self._locks[collection] = lk
            return lk

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create every known collection with its default iff it does not exist.

        Idempotent: existing documents are never touched, even when corrupt.
        Raises StorageError if the data directory or a document cannot be
        created -- a store that cannot initialize cannot serve requests.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for name in self._defaults:
                with self.lock_for(name):
                    path = self.path_for(name)
                    if path.exists():
                        continue
                    self._write_document(path, _serialize(self.default(name)))
                    logger.info("Initialized collection %s", name)
        except OSError as exc:
            logger.error("Failed to initialize data directory %s: %s", self.data_dir, exc)
            raise StorageError() from exc

    def read(self, collection: str) -> Any:
        return self.read_result(collection).value

    def read_result(self, collection: str) -> ReadResult:
        path = self.path_for(collection)
        with self.lock_for(collection):
            try:
                raw = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return ReadResult(self.default(collection), ReadStatus.DEFAULTED)
            except (OSError, UnicodeDecodeError) as exc:
                logger.error("Failed to read collection %s: %s", collection, exc)
                return ReadResult(self.default(collection), ReadStatus.RECOVERED, str(exc))
        try:
            value = json.loads(raw)
        except ValueError as exc:
            logger.error("Failed to parse collection %s: %s", collection, exc)
            return ReadResult(self.default(collection), ReadStatus.RECOVERED, str(exc))
        return ReadResult(value, ReadStatus.LOADED)

    def write(self, collection: str, value: Any) -> bool:
        """Replace the collection with value. Returns False on any failure."""
        try:
            path = self.path_for(collection)
            data = _serialize(value)
            with self.lock_for(collection):
                self._write_document(path, data)
        except (KeyError, OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write collection %s: %s", collection, exc)
            return False
        return True

    def append(self, collection: str, entry: Mapping[str, Any]) -> bool:
        """Append a timestamp-stamped copy of entry to a sequence collection.

        An explicit "timestamp" in entry wins over the generated one. If the
        stored document is not a sequence this is a no-op that still reports
        success. Returns False if the document is unreadable or the write fails.
        """
        with self.lock_for(collection):
            result = self.read_result(collection)
            if result.recovered:
                logger.error("Refusing to append to unreadable collection %s", collection)
                return False
            if not isinstance(result.value, list):
                return True
            result.value.append({"timestamp": _now_iso(), **entry})
            return self.write(collection, result.value)

    @contextmanager
    def transaction(self, *collections: str) -> Iterator[Transaction]:
        """Serialize a read-modify-write cycle over one or more collections.

        Locks are taken in sorted name order so two transactions over the same
        pair can never deadlock. Staged documents are committed together when
        the block exits cleanly; an exception inside the block discards them.
        """
        names = sorted(set(collections))
        with ExitStack() as stack:
            for name in names:
                stack.enter_context(self.lock_for(name))
            tx = Transaction(self, names)
            yield tx
            tx.commit()

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _write_document(self, path: Path, data: bytes) -> None:
        """Write via a sibling temp file and os.replace so readers never see a partial document."""
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _snapshot(self, collection: str) -> bytes | None:
        try:
            return self.path_for(collection).read_bytes()
        except FileNotFoundError:
            return None

    def _restore(self, collection: str, snapshot: bytes | None) -> None:
        path = self.path_for(collection)
        try:
            if snapshot is None:
                path.unlink(missing_ok=True)
            else:
                self._write_document(path, snapshot)
        except OSError:
            logger.exception("Rollback of collection %s failed; document may be inconsistent", collection)


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class Transaction:
    """Working set of a single transaction(). Only created by RecordStore."""

    def __init__(self, store: RecordStore, collections: list[str]) -> None:
        self._store = store
        self._collections = collections
        self._reads: dict[str, ReadResult] = {}
        self._staged: dict[str, Any] = {}

    def _check(self, collection: str) -> None:
        if collection not in self._collections:
            raise KeyError(f"Collection {collection!r} is not part of this transaction")

    def read(self, collection: str) -> Any:
        """Return the working copy of a collection (staged value if any)."""
        self._check(collection)
        if collection in self._staged:
            return self._staged[collection]
        if collection not in self._reads:
            self._reads[collection] = self._store.read_result(collection)
        return self._reads[collection].value

    def stage(self, collection: str, value: Any) -> None:
        self._check(collection)
        self._staged[collection] = value

    def commit(self) -> None:
        """Write every staged document, or none of them.

        All documents are serialized and snapshotted before the first write.
        If a later write fails, documents already replaced are restored from
        their snapshots and StorageError is raised.
        """
        if not self._staged:
            return

        payloads: dict[str, bytes] = {}
        for name, value in self._staged.items():
            read = self._reads.get(name)
            if read is not None and read.recovered:
                logger.error("Refusing to overwrite unreadable collection %s", name)
                raise StorageError()
            try:
                payloads[name] = _serialize(value)
            except (TypeError, ValueError) as exc:
                logger.error("Failed to serialize collection %s: %s", name, exc)
                raise StorageError() from exc

        try:
            snapshots = {name: self._store._snapshot(name) for name in payloads}
        except OSError as exc:
            logger.error("Failed to snapshot collections before commit: %s", exc)
            raise StorageError() from exc

        written: list[str] = []
        try:
            for name, data in payloads.items():
                self._store._write_document(self._store.path_for(name), data)
                written.append(name)
        except OSError as exc:
            logger.error("Commit failed after %s; rolling back: %s", written or "no writes", exc)
            for name in reversed(written):
                self._store._restore(name, snapshots[name])
            raise StorageError() from exc

        self._staged.clear()
