import logging
import sqlite3
from typing import List, Optional

from loandesk.book import Book
from loandesk.database import get_db_connection
from loandesk.validators import ISBNValidator, TextValidator

logger = logging.getLogger(__name__)

_BOOK_COLUMNS = """
    id, title, author, publisher, year_published, isbn,
    available_quantity, created_at, updated_at
"""


class Catalog:
    """Book records and their metadata.

    Copies only change through ``InventoryLedger``; nothing here edits
    ``available_quantity`` after a book has been added.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    # ------------------------- Core operations ------------------------- #
    def add_book(self, book: Book) -> Book:
        """Insert a prepared Book and fill in its id and timestamps."""
        if not TextValidator.validate_title(book.title):
            raise ValueError("Title cannot be empty.")
        if not TextValidator.validate_author(book.author):
            raise ValueError("Author cannot be empty.")
        if book.available_quantity is None or book.available_quantity < 0:
            raise ValueError("Quantity cannot be negative.")
        if book.isbn:
            book.isbn = ISBNValidator.canonical_isbn(book.isbn)
            if self.find_book_by_isbn(book.isbn):
                raise ValueError(f"Book with ISBN {book.isbn} already exists.")

        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                """
                INSERT INTO books (title, author, publisher, year_published, isbn, available_quantity)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (book.title, book.author, book.publisher, book.year_published,
                 book.isbn, book.available_quantity),
            )
            book.id = cursor.lastrowid
            row = conn.execute(
                "SELECT created_at, updated_at FROM books WHERE id = ?", (book.id,)
            ).fetchone()
            if row:
                book.created_at = row["created_at"]
                book.updated_at = row["updated_at"]
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Could not add book: {e}") from e
        finally:
            conn.close()
        logger.info(f"Book added: id={book.id}, title={book.title!r}, quantity={book.available_quantity}")
        return book

    def find_book(self, book_id: int) -> Optional[Book]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)
            ).fetchone()
            return Book.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def find_book_by_isbn(self, isbn: str) -> Optional[Book]:
        """Look a book up by ISBN-10 or ISBN-13."""
        try:
            norm = ISBNValidator.canonical_isbn(isbn)
        except ValueError:
            return None
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books WHERE isbn = ?", (norm,)
            ).fetchone()
            return Book.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def list_books(self) -> List[Book]:
        """All books, fresh from the database on every call."""
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books ORDER BY title, id").fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def list_available_books(self) -> List[Book]:
        """Snapshot of books that have at least one copy on the shelf."""
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books WHERE available_quantity > 0 ORDER BY title, id"
            ).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def update_book(self, book_id: int, *, title: Optional[str] = None, author: Optional[str] = None,
                    publisher: Optional[str] = None, year_published: Optional[int] = None) -> Optional[Book]:
        """Update catalog metadata. Returns the updated book, or None if not found."""
        existing = self.find_book(book_id)
        if not existing:
            return None

        update_fields = {}
        if title is not None and title.strip():
            update_fields["title"] = title.strip()
        if author is not None and author.strip():
            update_fields["author"] = author.strip()
        if publisher is not None:
            update_fields["publisher"] = publisher.strip() or None
        if year_published is not None:
            update_fields["year_published"] = year_published

        if not update_fields:
            raise ValueError("Nothing to update. Provide title, author, publisher or year.")

        set_clause = ", ".join([f"{name} = ?" for name in update_fields.keys()])
        params = list(update_fields.values()) + [book_id]

        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                f"UPDATE books SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?", params
            )
        finally:
            conn.close()

        return self.find_book(book_id)
