# phasher/database/manager.py
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Queue
from typing import Iterable, Iterator, List, Tuple

from ..config import DEFAULT_DB_TIMEOUT, SQLITE_BUSY_TIMEOUT, UniquePolicy
from ..models.descriptor import FingerprintRow
from ..models.fingerprint import Fingerprint
from .init import init_db_if_needed
from .schema import INSERT_HASHES, LOOKUP_HASHES

logger = logging.getLogger(__name__)


def is_locked_error(exc: BaseException) -> bool:
    """True for the transient errors SQLite raises while another writer holds the lock."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    msg = str(exc).lower()
    return "database is locked" in msg or "database is busy" in msg


def is_unique_violation(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(exc)


class FingerprintStore:
    """SQLite-backed fingerprint store.

    Writers get a fresh connection per batch so that concurrent commits each
    hold their own transaction. Readers share a small pool of connections.
    """

    def __init__(self, db_path: Path, unique_policy: UniquePolicy = UniquePolicy.TUPLE,
                 timeout: float = DEFAULT_DB_TIMEOUT):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.unique_policy = init_db_if_needed(self.db_path, unique_policy)
        self._pool: "Queue[sqlite3.Connection]" = Queue()
        self._readers: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._closed = False

    def _connect(self, timeout: float, check_same_thread: bool = True) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=timeout, check_same_thread=check_same_thread)
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def insert_batch(self, rows: Iterable[FingerprintRow]) -> Tuple[int, int]:
        """
        Insert rows in one transaction; returns (inserted, duplicates).

        Uniqueness violations are absorbed row by row. Any other error rolls back
        the whole batch and propagates, including "database is locked", which
        callers are expected to retry.
        """
        inserted = duplicates = 0
        conn = self._connect(SQLITE_BUSY_TIMEOUT)
        try:
            with conn:
                for row in rows:
                    try:
                        conn.execute(INSERT_HASHES, tuple(row))
                    except sqlite3.IntegrityError as e:
                        if not is_unique_violation(e):
                            raise
                        duplicates += 1
                        logger.debug("Duplicate row %s frame %d", row.key, row.frame)
                    else:
                        inserted += 1
        finally:
            conn.close()
        return inserted, duplicates

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        """Borrow a pooled read connection."""
        if self._closed:
            raise sqlite3.ProgrammingError("Cannot operate on a closed store.")
        try:
            conn = self._pool.get_nowait()
        except Empty:
            conn = self._connect(self.timeout, check_same_thread=False)
            with self._lock:
                if self._closed:
                    conn.close()
                    raise sqlite3.ProgrammingError("Cannot operate on a closed store.")
                self._readers.append(conn)
        try:
            yield conn
        finally:
            with self._lock:
                closed = self._closed
            if closed:
                conn.close()
            else:
                self._pool.put(conn)

    def lookup(self, fingerprint: Fingerprint) -> List[Tuple[str, int]]:
        """Exact 128-bit match; returns stored (key, frame) pairs."""
        with self.reader() as conn:
            rows = conn.execute(LOOKUP_HASHES, fingerprint.words).fetchall()
        return [(key, frame) for key, frame in rows]

    def count(self) -> int:
        with self.reader() as conn:
            return conn.execute("SELECT COUNT(*) FROM key_hashes").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            readers, self._readers = self._readers, []
        for conn in readers:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.debug("Error closing reader connection: %s", e)
