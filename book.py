from __future__ import annotations


class Book:
    """Represents a single book in the collection."""

    def __init__(self, id: int | None, title: str, author: str, description: str | None = None,
                 cover: bytes | None = None, cover_url: str | None = None) -> None:
        self.id = id
        self.title = title
        self.author = author
        self.description = description
        # Raw bytes uploaded through the form
        self.cover = cover
        # Looked up from Open Library for display; never persisted
        self.cover_url = cover_url

    @property
    def has_cover(self) -> bool:
        return bool(self.cover)

    @staticmethod
    def from_row(row) -> "Book":
        """Build a Book from a sqlite3.Row (or any mapping) of the books table."""
        data = dict(row)
        cover = data.get("cover")
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            description=data.get("description"),
            cover=bytes(cover) if cover is not None else None,
        )
