import logging
import sqlite3
from typing import List, Optional

from book import Book
from database import ConnectionPool, StorageError, initialize_database

logger = logging.getLogger(__name__)

__all__ = ["Library", "StorageError"]

_BOOK_COLUMNS = "id, title, author, description, cover"


class Library:
    """Manages the book collection stored in the books table."""

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    @classmethod
    def from_file(cls, db_file: str, pool_size: int = 5, pool_timeout: float = 5.0) -> "Library":
        """Open a pool on ``db_file`` and make sure the schema exists."""
        pool = ConnectionPool(db_file, size=pool_size, timeout=pool_timeout)
        initialize_database(pool)
        return cls(pool)

    def close(self) -> None:
        self.pool.close()

    # ------------------------- Core operations ------------------------- #
    def list_books(self) -> List[Book]:
        """List every book, ascending by id (fresh on every call)."""
        try:
            with self.pool.connection() as conn:
                rows = conn.execute(
                    f"SELECT {_BOOK_COLUMNS} FROM books ORDER BY id ASC"
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Could not list books: {e}") from e
        return [Book.from_row(row) for row in rows]

    def get_book(self, book_id: int) -> Optional[Book]:
        """Return the book with this id, or None."""
        try:
            with self.pool.connection() as conn:
                row = conn.execute(
                    f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Could not fetch book {book_id}: {e}") from e
        return Book.from_row(row) if row else None

    def insert_book(self, title: str, author: str, description: Optional[str],
                    cover_bytes: Optional[bytes] = None) -> Book:
        """Insert a new book and return it with its generated id."""
        try:
            with self.pool.connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO books (title, author, description, cover) VALUES (?, ?, ?, ?)",
                    (title, author, description, cover_bytes),
                )
                conn.commit()
                book_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise StorageError(f"Could not insert book: {e}") from e
        logger.debug("Inserted book %s (%r)", book_id, title)
        return Book(id=book_id, title=title, author=author, description=description, cover=cover_bytes)

    def update_book(self, book_id: int, title: str, author: str, description: Optional[str],
                    cover_bytes: Optional[bytes] = None) -> None:
        """Update a book in place.

        The stored cover is only replaced when ``cover_bytes`` is given, so an
        edit without a new file keeps the previous upload byte-for-byte.
        Updating an id that doesn't exist is not an error.
        """
        try:
            with self.pool.connection() as conn:
                if cover_bytes:
                    conn.execute(
                        "UPDATE books SET title = ?, author = ?, description = ?, cover = ? WHERE id = ?",
                        (title, author, description, cover_bytes, book_id),
                    )
                else:
                    conn.execute(
                        "UPDATE books SET title = ?, author = ?, description = ? WHERE id = ?",
                        (title, author, description, book_id),
                    )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Could not update book {book_id}: {e}") from e

    def delete_book(self, book_id: int) -> None:
        """Delete a book; deleting a missing id is not an error."""
        try:
            with self.pool.connection() as conn:
                conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Could not delete book {book_id}: {e}") from e

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.pool.connection() as conn:
                conn.execute("SELECT 1").fetchone()
        except (sqlite3.Error, StorageError):
            return False
        return True
