"""Errors raised by the loan engine.

Each error carries enough structure to point at the offending field, book
or loan; ``to_dict`` is what the HTTP layer and the CLI report.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional


class LoanDeskError(Exception):
    """Base class for loan engine failures."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(LoanDeskError):
    """Malformed or missing input. Raised before any stock is touched."""

    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFound(LoanDeskError):
    code = "not_found"
    kind = "record"

    def __init__(self, identifier: Any, message: Optional[str] = None) -> None:
        super().__init__(message or f"{self.kind.capitalize()} {identifier} not found.")
        self.identifier = identifier

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind
        data["id"] = self.identifier
        return data


class BookNotFound(NotFound):
    kind = "book"


class MemberNotFound(NotFound):
    kind = "member"


class LoanNotFound(NotFound):
    kind = "loan"


class InsufficientStock(LoanDeskError):
    """A reservation asked for more copies than are available."""

    code = "insufficient_stock"

    def __init__(self, book_id: int, title: Optional[str], requested: int, available: int) -> None:
        label = f'"{title}"' if title else f"book {book_id}"
        super().__init__(f"Cannot reserve {requested} of {label}: only {available} available.")
        self.book_id = book_id
        self.title = title
        self.requested = requested
        self.available = available

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            book_id=self.book_id,
            title=self.title,
            requested=self.requested,
            available=self.available,
        )
        return data


class AlreadyReturned(LoanDeskError):
    code = "already_returned"

    def __init__(self, loan_id: int, returned_on: Optional[date] = None) -> None:
        super().__init__(f"Loan {loan_id} has already been returned.")
        self.loan_id = loan_id
        self.returned_on = returned_on

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["loan_id"] = self.loan_id
        data["returned_on"] = self.returned_on.isoformat() if self.returned_on else None
        return data


class Unselectable(LoanDeskError):
    """The loan builder refused a book with no available copies."""

    code = "unselectable"

    def __init__(self, book_id: int, title: Optional[str] = None) -> None:
        label = f'"{title}"' if title else f"Book {book_id}"
        super().__init__(f"{label} has no available copies.")
        self.book_id = book_id
        self.title = title

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["book_id"] = self.book_id
        data["title"] = self.title
        return data


class LedgerBusy(LoanDeskError):
    """The write lock could not be taken within ``settings.database_timeout``."""

    code = "busy"

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Inventory is busy; could not get the write lock within {timeout:g}s. Try again.")
        self.timeout = timeout

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["timeout"] = self.timeout
        return data
