from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from loandesk.status import LoanStatus, resolve_status


def _as_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class LoanItem:
    """One book-and-quantity line of a loan, with the title/author frozen at reservation time."""

    book_id: int
    quantity: int
    title: str
    author: str
    id: Optional[int] = None
    loan_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "book_id": self.book_id,
            "quantity": self.quantity,
            "title": self.title,
            "author": self.author,
        }

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "LoanItem":
        return LoanItem(
            id=row["id"],
            loan_id=row["loan_id"],
            book_id=row["book_id"],
            quantity=row["quantity"],
            title=row["title"],
            author=row["author"],
        )


@dataclass
class Loan:
    id: int
    member_id: int
    borrowed_on: date
    due_on: date
    status: LoanStatus = LoanStatus.BORROWED
    returned_on: Optional[date] = None
    created_at: Optional[str] = None
    member_name: Optional[str] = None
    # None means "not fetched", as in listings without item detail
    items: Optional[List[LoanItem]] = field(default=None)

    @property
    def is_returned(self) -> bool:
        return self.returned_on is not None

    def display_status(self, today: Optional[date] = None) -> LoanStatus:
        return resolve_status(self.status, self.due_on, self.returned_on, today)

    def is_overdue(self, today: Optional[date] = None) -> bool:
        return self.display_status(today) is LoanStatus.OVERDUE

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items or [])

    def to_dict(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Serialize with the status resolved for ``today``; the stored value is kept as ``stored_status``."""
        return {
            "id": self.id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "borrowed_on": self.borrowed_on.isoformat(),
            "due_on": self.due_on.isoformat(),
            "status": self.display_status(today).value,
            "stored_status": self.status.value,
            "returned_on": self.returned_on.isoformat() if self.returned_on else None,
            "created_at": self.created_at,
            "items": [item.to_dict() for item in self.items] if self.items is not None else None,
        }

    @staticmethod
    def from_row(row: Mapping[str, Any], items: Optional[List[LoanItem]] = None) -> "Loan":
        keys = row.keys()
        return Loan(
            id=row["id"],
            member_id=row["member_id"],
            borrowed_on=_as_date(row["borrowed_on"]),
            due_on=_as_date(row["due_on"]),
            status=LoanStatus(row["status"]),
            returned_on=_as_date(row["returned_on"]),
            created_at=row["created_at"],
            member_name=row["member_name"] if "member_name" in keys else None,
            items=items,
        )
