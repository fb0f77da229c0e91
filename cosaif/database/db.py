"""SQLite access for the local session database.

Architecture:
  - One thread-local disk connection per thread (WAL mode), so push
    callbacks, scheduled timers and the UI thread never share a cursor.
  - Readers-writer lock: concurrent reads, exclusive writes.  The session
    database is tiny; the lock only keeps read-then-write sequences from
    interleaving at the statement level.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from cosaif.config import get_db_path

logger = logging.getLogger(__name__)

DB_BUSY_TIMEOUT = 30000  # ms


class _RWLock:
    """Readers-writer lock with writer preference."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._pending_writers = 0

    def read_acquire(self):
        with self._cond:
            while self._writer or self._pending_writers > 0:
                self._cond.wait()
            self._readers += 1

    def read_release(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def write_acquire(self):
        with self._cond:
            self._pending_writers += 1
            while self._writer or self._readers > 0:
                self._cond.wait()
            self._pending_writers -= 1
            self._writer = True

    def write_release(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()


_rwlock = _RWLock()
_local = threading.local()
_path_override: Optional[str] = None
_all_conns: List[sqlite3.Connection] = []
_conns_lock = threading.Lock()


def set_db_path(path: Optional[str]) -> None:
    """Point the module at another database file (``None`` = config value).

    Closes every open connection so the next call reconnects.
    """
    global _path_override
    close_all()
    _path_override = path


def _get_db_path() -> str:
    path = _path_override or get_db_path()
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    return path


def _connect() -> sqlite3.Connection:
    conn = getattr(_local, "conn", None)
    if conn is None:
        db_path = _get_db_path()
        conn = sqlite3.connect(db_path, timeout=DB_BUSY_TIMEOUT / 1000, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={DB_BUSY_TIMEOUT}")
        conn.row_factory = sqlite3.Row
        _local.conn = conn
        with _conns_lock:
            _all_conns.append(conn)
    return conn


@contextmanager
def get_conn() -> Iterator[sqlite3.Connection]:
    """Yield this thread's connection under the exclusive lock.

    Commits on success, rolls back on error.
    """
    _rwlock.write_acquire()
    try:
        conn = _connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
    finally:
        _rwlock.write_release()


def execute(sql: str, params: tuple = ()) -> int:
    """Run a write statement; returns the affected row count."""
    with get_conn() as conn:
        return conn.execute(sql, params).rowcount


def execute_script(sql: str) -> None:
    with get_conn() as conn:
        conn.executescript(sql)


def fetch_one(sql: str, params: tuple = ()) -> Optional[dict]:
    _rwlock.read_acquire()
    try:
        row = _connect().execute(sql, params).fetchone()
        return dict(row) if row else None
    finally:
        _rwlock.read_release()


def fetch_all(sql: str, params: tuple = ()) -> List[dict]:
    _rwlock.read_acquire()
    try:
        return [dict(r) for r in _connect().execute(sql, params).fetchall()]
    finally:
        _rwlock.read_release()


def close_all() -> None:
    """Close every connection opened by this module (for shutdown)."""
    with _conns_lock:
        conns = list(_all_conns)
        _all_conns.clear()
    for conn in conns:
        try:
            conn.close()
        except Exception:
            pass
    # Fresh namespace: every thread reconnects lazily on next use.
    global _local
    _local = threading.local()

