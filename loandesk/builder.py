"""Staging area for a loan before it is submitted.

The builder holds a mapping of book id to quantity checked against the
inventory snapshot it was given. Those checks are a convenience for the
operator; ``LoanService.create_loan`` checks live stock again at submission
because the snapshot may be stale.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from loandesk.book import Book
from loandesk.config import settings
from loandesk.errors import BookNotFound, Unselectable, ValidationError
from loandesk.schemas import LoanItemRequest, LoanRequest

logger = logging.getLogger(__name__)


class LoanBuilder:
    def __init__(self, books: Iterable[Book] = ()) -> None:
        self._snapshot: Dict[int, Book] = {b.id: b for b in books}
        self._selected: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, book_id: object) -> bool:
        return book_id in self._selected

    @property
    def is_empty(self) -> bool:
        return not self._selected

    @property
    def selected(self) -> Dict[int, int]:
        return dict(self._selected)

    @property
    def items(self) -> List[LoanItemRequest]:
        return [LoanItemRequest(book_id=b, quantity=q) for b, q in self._selected.items()]

    def _selectable_book(self, book_id: int) -> Book:
        book = self._snapshot.get(book_id)
        if book is None:
            raise BookNotFound(book_id)
        if book.available_quantity <= 0:
            raise Unselectable(book_id, book.title)
        return book

    # ------------------------- Selection ------------------------- #
    def select(self, book_id: int) -> None:
        """Add a book with quantity 1. Re-selecting keeps the current quantity."""
        self._selectable_book(book_id)
        self._selected.setdefault(book_id, 1)

    def set_quantity(self, book_id: int, quantity: int) -> Optional[str]:
        """Set the quantity for a book, selecting it if needed.

        Out-of-range values are clamped to ``1..available`` and a warning
        message is returned instead of raising.
        """
        book = self._selectable_book(book_id)
        warning = None
        if quantity > book.available_quantity:
            warning = f'Maximum {book.available_quantity} copies for "{book.title}".'
            quantity = book.available_quantity
        elif quantity < 1:
            warning = f'At least 1 copy of "{book.title}" must be borrowed.'
            quantity = 1
        if warning:
            logger.warning(warning)
        self._selected[book_id] = quantity
        return warning

    def deselect(self, book_id: int) -> None:
        self._selected.pop(book_id, None)

    def clear(self) -> None:
        self._selected.clear()

    def refresh(self, books: Iterable[Book]) -> List[str]:
        """Swap in a newer inventory snapshot and re-fit the selection to it."""
        self._snapshot = {b.id: b for b in books}
        warnings: List[str] = []
        for book_id, quantity in list(self._selected.items()):
            book = self._snapshot.get(book_id)
            if book is None or book.available_quantity <= 0:
                del self._selected[book_id]
                label = f'"{book.title}"' if book else f"Book {book_id}"
                warnings.append(f"{label} is no longer available and was removed.")
            elif quantity > book.available_quantity:
                self._selected[book_id] = book.available_quantity
                warnings.append(f'Maximum {book.available_quantity} copies for "{book.title}".')
        for message in warnings:
            logger.warning(message)
        return warnings

    # ------------------------- Submission ------------------------- #
    def to_request(self, member_id: int, borrowed_on: Optional[date] = None,
                   due_on: Optional[date] = None) -> LoanRequest:
        """Freeze the selection into a LoanRequest for ``LoanService.create_loan``."""
        if self.is_empty:
            raise ValidationError("items", "Select at least one book.")
        borrowed_on = borrowed_on or date.today()
        due_on = due_on or borrowed_on + timedelta(days=settings.default_loan_days)
        return LoanRequest(member_id=member_id, borrowed_on=borrowed_on, due_on=due_on, items=self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "books": [b.to_dict() for b in self._snapshot.values()],
            "selected": [{"book_id": b, "quantity": q} for b, q in self._selected.items()],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "LoanBuilder":
        builder = LoanBuilder(Book.from_dict(b) for b in data.get("books", []))
        for entry in data.get("selected", []):
            builder.set_quantity(int(entry["book_id"]), int(entry["quantity"]))
        return builder
