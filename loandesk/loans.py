"""Loan service: creating loans against the inventory ledger, returning them, and reading them back."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from loandesk.book import Book
from loandesk.catalog import Catalog
from loandesk.database import get_db_connection
from loandesk.errors import (
    AlreadyReturned,
    LoanDeskError,
    LoanNotFound,
    MemberNotFound,
    ValidationError,
)
from loandesk.inventory import InventoryLedger
from loandesk.loan import Loan, LoanItem
from loandesk.members import Member, MemberDirectory
from loandesk.schemas import LoanItemRequest, LoanRequest
from loandesk.status import LoanStatus

logger = logging.getLogger(__name__)

ItemInput = Union[Tuple[int, int], LoanItemRequest, Mapping[str, Any]]

_LOAN_SELECT = """
    SELECT l.id, l.member_id, l.borrowed_on, l.due_on, l.status, l.returned_on, l.created_at,
           m.name AS member_name
    FROM loans l
    LEFT JOIN members m ON m.id = l.member_id
"""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce_date(value: Any, field: str) -> date:
    # datetime is a date subclass; keep only the calendar day
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(field, f"{field} must be a date (YYYY-MM-DD).")


class LoanService:
    def __init__(self, members: MemberDirectory, catalog: Catalog, ledger: InventoryLedger,
                 db_file: Optional[str] = None) -> None:
        self.members = members
        self.catalog = catalog
        self.ledger = ledger
        self.db_file = db_file

    # ------------------------- Collaborator reads ------------------------- #
    def list_members(self) -> List[Member]:
        return self.members.list_members()

    def list_available_books(self) -> List[Book]:
        return self.catalog.list_available_books()

    # ------------------------- Loan creation ------------------------- #
    def create_loan(self, member_id: int, borrowed_on: date, due_on: date,
                    items: Iterable[ItemInput]) -> Loan:
        """Reserve every item and record one loan, all or nothing.

        Items are reserved in the order given. If any reservation or the
        write of the loan itself fails, the copies already reserved are
        released before the error reaches the caller.
        """
        try:
            lines = self._validate(member_id, borrowed_on, due_on, items)
            borrowed_on = _coerce_date(borrowed_on, "borrowed_on")
            due_on = _coerce_date(due_on, "due_on")
            if self.members.get_member(member_id) is None:
                raise MemberNotFound(member_id)

            with self.ledger.transaction() as txn:
                frozen: List[LoanItem] = []
                for book_id, quantity in lines:
                    txn.reserve(book_id, quantity)
                    row = txn.conn.execute(
                        "SELECT title, author FROM books WHERE id = ?", (book_id,)
                    ).fetchone()
                    frozen.append(LoanItem(book_id=book_id, quantity=quantity,
                                           title=row["title"], author=row["author"]))

                cursor = txn.conn.execute(
                    "INSERT INTO loans (member_id, borrowed_on, due_on, status) VALUES (?, ?, ?, ?)",
                    (member_id, borrowed_on.isoformat(), due_on.isoformat(), LoanStatus.BORROWED.value),
                )
                loan_id = cursor.lastrowid
                txn.conn.executemany(
                    "INSERT INTO loan_items (loan_id, book_id, quantity, title, author) VALUES (?, ?, ?, ?, ?)",
                    [(loan_id, i.book_id, i.quantity, i.title, i.author) for i in frozen],
                )
        except LoanDeskError as e:
            logger.warning(f"Loan rejected for member {member_id}: {e}")
            raise

        logger.info(
            f"Loan {loan_id} created: member={member_id}, "
            f"items={[(i.book_id, i.quantity) for i in frozen]}, due={due_on.isoformat()}"
        )
        return self.get_loan(loan_id)

    def create_loan_from_request(self, request: LoanRequest) -> Loan:
        return self.create_loan(request.member_id, request.borrowed_on, request.due_on, request.items)

    def _validate(self, member_id: Any, borrowed_on: Any, due_on: Any,
                  items: Iterable[ItemInput]) -> List[Tuple[int, int]]:
        if not _is_int(member_id):
            raise ValidationError("member_id", "member_id must be an integer.")
        start = _coerce_date(borrowed_on, "borrowed_on")
        end = _coerce_date(due_on, "due_on")
        if end < start:
            raise ValidationError("due_on", "due_on cannot be earlier than borrowed_on.")

        lines: List[Tuple[int, int]] = []
        seen = set()
        for index, item in enumerate(items or []):
            book_id, quantity = self._unpack_item(item, index)
            if not _is_int(book_id):
                raise ValidationError(f"items[{index}].book_id", "book_id must be an integer.")
            if not _is_int(quantity) or quantity < 1:
                raise ValidationError(f"items[{index}].quantity",
                                      f"Quantity for book {book_id} must be at least 1.")
            if book_id in seen:
                raise ValidationError(f"items[{index}].book_id",
                                      f"Book {book_id} appears more than once.")
            seen.add(book_id)
            lines.append((book_id, quantity))
        if not lines:
            raise ValidationError("items", "A loan needs at least one book.")
        return lines

    @staticmethod
    def _unpack_item(item: ItemInput, index: int) -> Tuple[Any, Any]:
        if isinstance(item, LoanItemRequest):
            return item.book_id, item.quantity
        if isinstance(item, Mapping):
            return item.get("book_id"), item.get("quantity", 1)
        if isinstance(item, (tuple, list)) and len(item) == 2:
            return item[0], item[1]
        raise ValidationError(f"items[{index}]", "Each item needs a book_id and a quantity.")

    # ------------------------- Returns ------------------------- #
    def return_loan(self, loan_id: int, returned_on: Optional[date] = None) -> Loan:
        """Release every item of a borrowed loan and mark it returned.

        A loan can only be returned once; a second call raises
        ``AlreadyReturned`` and leaves the inventory untouched.
        """
        returned_on = _coerce_date(returned_on, "returned_on") if returned_on else date.today()
        try:
            with self.ledger.transaction() as txn:
                row = txn.conn.execute(
                    "SELECT id, borrowed_on, status, returned_on FROM loans WHERE id = ?", (loan_id,)
                ).fetchone()
                if row is None:
                    raise LoanNotFound(loan_id)
                if row["status"] == LoanStatus.RETURNED.value:
                    previous = date.fromisoformat(row["returned_on"]) if row["returned_on"] else None
                    raise AlreadyReturned(loan_id, previous)
                if returned_on < date.fromisoformat(row["borrowed_on"]):
                    raise ValidationError("returned_on", "returned_on cannot be earlier than borrowed_on.")

                items = self._fetch_items(txn.conn, loan_id)
                for item in items:
                    txn.release(item.book_id, item.quantity)
                txn.conn.execute(
                    "UPDATE loans SET status = ?, returned_on = ? WHERE id = ?",
                    (LoanStatus.RETURNED.value, returned_on.isoformat(), loan_id),
                )
        except LoanDeskError as e:
            logger.warning(f"Return rejected for loan {loan_id}: {e}")
            raise

        logger.info(f"Loan {loan_id} returned on {returned_on.isoformat()}, released {len(items)} line(s)")
        return self.get_loan(loan_id)

    # ------------------------- Reads ------------------------- #
    @staticmethod
    def _fetch_items(conn: sqlite3.Connection, loan_id: int) -> List[LoanItem]:
        rows = conn.execute(
            "SELECT id, loan_id, book_id, quantity, title, author FROM loan_items WHERE loan_id = ? ORDER BY id",
            (loan_id,),
        ).fetchall()
        return [LoanItem.from_row(r) for r in rows]

    def get_loan(self, loan_id: int) -> Loan:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(f"{_LOAN_SELECT} WHERE l.id = ?", (loan_id,)).fetchone()
            if row is None:
                raise LoanNotFound(loan_id)
            return Loan.from_row(row, items=self._fetch_items(conn, loan_id))
        finally:
            conn.close()

    def get_loan_items(self, loan_id: int) -> List[LoanItem]:
        conn = get_db_connection(self.db_file)
        try:
            return self._fetch_items(conn, loan_id)
        finally:
            conn.close()

    def list_loans(self, member_id: Optional[int] = None,
                   status: Optional[Union[LoanStatus, str]] = None,
                   include_items: bool = False, today: Optional[date] = None) -> List[Loan]:
        """Loan summaries, newest first.

        ``status`` filters on the status as resolved for ``today``, so
        ``overdue`` works even though it is never stored. Items are left
        as None unless ``include_items`` is set.
        """
        wanted = None
        if status is not None:
            try:
                wanted = LoanStatus(status)
            except ValueError as e:
                raise ValidationError("status", f"Unknown status {status!r}.") from e

        query = _LOAN_SELECT
        params: list = []
        if member_id is not None:
            query += " WHERE l.member_id = ?"
            params.append(member_id)
        query += " ORDER BY l.id DESC"

        conn = get_db_connection(self.db_file)
        try:
            loans = [Loan.from_row(r) for r in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

        if wanted is not None:
            loans = [l for l in loans if l.display_status(today) is wanted]

        if include_items:
            for loan in loans:
                loan.items = self._items_or_empty(loan.id)
        return loans

    def _items_or_empty(self, loan_id: int) -> List[LoanItem]:
        """Item detail for a listing row; a failed fetch shows as no items."""
        try:
            return self.get_loan_items(loan_id)
        except sqlite3.Error as e:
            logger.warning(f"Could not load items for loan {loan_id}: {e}")
            return []
