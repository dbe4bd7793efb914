import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the database cannot serve a request."""


class ConnectionPool:
    """A bounded pool of SQLite connections.

    Connections are opened lazily up to ``size``. A caller that finds every
    connection checked out waits up to ``timeout`` seconds and then gets a
    StorageError instead of an unbounded new connection.
    """

    def __init__(self, db_file: str, size: int = 5, timeout: float = 5.0) -> None:
        if size < 1:
            raise ValueError("Pool size must be at least 1.")
        self.db_file = db_file
        self.size = size
        self.timeout = timeout
        self._idle: "queue.Queue[sqlite3.Connection]" = queue.Queue(maxsize=size)
        self._lock = threading.Lock()
        self._opened = 0
        self._closed = False

    def _open_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            # WAL lets readers proceed while a writer holds the database
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def acquire(self) -> sqlite3.Connection:
        """Check a connection out of the pool."""
        if self._closed:
            raise StorageError("Connection pool is closed.")
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            can_open = self._opened < self.size
            if can_open:
                self._opened += 1
        if can_open:
            try:
                return self._open_connection()
            except sqlite3.Error as e:
                with self._lock:
                    self._opened -= 1
                raise StorageError(f"Could not open database {self.db_file}: {e}") from e

        try:
            return self._idle.get(timeout=self.timeout)
        except queue.Empty:
            raise StorageError(
                f"No database connection available after {self.timeout} seconds."
            ) from None

    def release(self, conn: sqlite3.Connection) -> None:
        """Return a connection to the pool for reuse."""
        if self._closed:
            conn.close()
            with self._lock:
                self._opened -= 1
            return
        try:
            # Discard any uncommitted work left by the borrower
            conn.rollback()
            self._idle.put_nowait(conn)
        except (sqlite3.Error, queue.Full):
            conn.close()
            with self._lock:
                self._opened -= 1

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Scoped check-out: the connection always goes back to the pool."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    @property
    def checked_out(self) -> int:
        return self._opened - self._idle.qsize()

    def close(self) -> None:
        """Close every idle connection and refuse further check-outs."""
        self._closed = True
        closed: List[sqlite3.Connection] = []
        while True:
            try:
                closed.append(self._idle.get_nowait())
            except queue.Empty:
                break
        for conn in closed:
            conn.close()
        with self._lock:
            self._opened -= len(closed)


def create_tables(conn: sqlite3.Connection) -> None:
    """Creates the books table if it doesn't exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS books (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            author TEXT NOT NULL,
            description TEXT,
            cover BLOB
        )
    """)
    conn.commit()


def initialize_database(pool: ConnectionPool) -> None:
    """Initializes the database, creating tables if needed."""
    try:
        with pool.connection() as conn:
            create_tables(conn)
    except sqlite3.Error as e:
        raise StorageError(f"Could not initialize database {pool.db_file}: {e}") from e
    logger.info("Connected to database %s", pool.db_file)
