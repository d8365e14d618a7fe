"""Loan status resolution.

Only ``borrowed`` and ``returned`` are ever stored. ``overdue`` is a label
computed on every read for borrowed loans past their due date.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional, Union


class LoanStatus(str, Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"


def resolve_status(
    status: Union[LoanStatus, str],
    due_on: date,
    returned_on: Optional[date],
    current_date: Optional[date] = None,
) -> LoanStatus:
    """Return the status to display for a loan on ``current_date`` (default: today)."""
    if returned_on is not None:
        return LoanStatus.RETURNED
    current_date = current_date or date.today()
    if current_date > due_on:
        return LoanStatus.OVERDUE
    return LoanStatus.BORROWED
