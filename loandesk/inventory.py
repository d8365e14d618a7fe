"""Inventory ledger: the only code that changes a book's available copies.

``reserve`` and ``release`` are conditional UPDATEs run inside
``BEGIN IMMEDIATE``, which takes SQLite's write lock before the availability
check. Two reservations for the last copy therefore serialize and only one
succeeds, whether they come from threads or from separate processes.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from loandesk.config import settings
from loandesk.database import get_db_connection
from loandesk.errors import BookNotFound, InsufficientStock, LedgerBusy, ValidationError

logger = logging.getLogger(__name__)


class LedgerTransaction:
    """Reservations made on one connection inside one write transaction.

    Every successful ``reserve`` is recorded so that ``compensate`` can put
    the copies back if the surrounding unit of work fails.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.reserved: List[Tuple[int, int]] = []

    def reserve(self, book_id: int, quantity: int) -> int:
        """Take ``quantity`` copies of ``book_id``; return the remaining count."""
        row = self.conn.execute(
            "SELECT title, available_quantity FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        if row is None:
            raise BookNotFound(book_id)
        available = row["available_quantity"]
        if quantity < 1 or quantity > available:
            raise InsufficientStock(book_id, row["title"], quantity, available)

        cursor = self.conn.execute(
            """
            UPDATE books
            SET available_quantity = available_quantity - ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND available_quantity >= ?
            """,
            (quantity, book_id, quantity),
        )
        if cursor.rowcount != 1:
            # Only reachable if another writer slipped past the write lock
            raise InsufficientStock(book_id, row["title"], quantity, available)
        self.reserved.append((book_id, quantity))
        return available - quantity

    def release(self, book_id: int, quantity: int) -> int:
        """Put ``quantity`` copies of ``book_id`` back; return the new count."""
        if quantity < 1:
            raise ValidationError("quantity", "Release quantity must be at least 1.")
        cursor = self.conn.execute(
            """
            UPDATE books
            SET available_quantity = available_quantity + ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (quantity, book_id),
        )
        if cursor.rowcount == 0:
            raise BookNotFound(book_id)
        row = self.conn.execute(
            "SELECT available_quantity FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return row["available_quantity"]

    def compensate(self) -> None:
        """Release everything reserved so far, newest first."""
        while self.reserved:
            book_id, quantity = self.reserved.pop()
            self.release(book_id, quantity)
            logger.info(f"Compensated reservation: book={book_id}, quantity={quantity}")


class InventoryLedger:
    """Atomic reserve/release of per-book available copies."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """Scope a unit of work over the ledger.

        Commits on a clean exit. On any exception every reservation made in
        the scope is released, the transaction is rolled back and the
        exception propagates.
        """
        conn = get_db_connection(self.db_file)
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                if "locked" not in str(e) and "busy" not in str(e):
                    raise
                logger.warning(f"Write lock not acquired within {settings.database_timeout}s: {e}")
                raise LedgerBusy(settings.database_timeout) from e
            txn = LedgerTransaction(conn)
            try:
                yield txn
            except Exception:
                if conn.in_transaction:
                    try:
                        txn.compensate()
                    except sqlite3.Error as e:
                        logger.error(f"Compensating release failed, relying on rollback: {e}")
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def reserve(self, book_id: int, quantity: int) -> int:
        with self.transaction() as txn:
            remaining = txn.reserve(book_id, quantity)
        logger.debug(f"Reserved {quantity} of book {book_id}, {remaining} left")
        return remaining

    def release(self, book_id: int, quantity: int) -> int:
        with self.transaction() as txn:
            available = txn.release(book_id, quantity)
        logger.debug(f"Released {quantity} of book {book_id}, {available} available")
        return available

    def available(self, book_id: int) -> int:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT available_quantity FROM books WHERE id = ?", (book_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise BookNotFound(book_id)
        return row["available_quantity"]
