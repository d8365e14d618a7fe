"""Loan Desk - library loan and inventory package

This package contains:
- Inventory ledger (inventory.py)
- Loan builder staging (builder.py)
- Loan service and queries (loans.py)
- Loan status resolution (status.py)
- Catalog and member directory collaborators (catalog.py, members.py)
- HTTP API (api.py) and CLI (main.py)
"""

from .book import Book
from .builder import LoanBuilder
from .desk import LoanDesk
from .errors import (
    AlreadyReturned,
    BookNotFound,
    InsufficientStock,
    LedgerBusy,
    LoanDeskError,
    LoanNotFound,
    MemberNotFound,
    NotFound,
    Unselectable,
    ValidationError,
)
from .inventory import InventoryLedger
from .loan import Loan, LoanItem
from .loans import LoanService
from .members import Member
from .status import LoanStatus, resolve_status

__all__ = [
    "Book",
    "LoanBuilder",
    "LoanDesk",
    "AlreadyReturned",
    "BookNotFound",
    "InsufficientStock",
    "LedgerBusy",
    "LoanDeskError",
    "LoanNotFound",
    "MemberNotFound",
    "NotFound",
    "Unselectable",
    "ValidationError",
    "InventoryLedger",
    "Loan",
    "LoanItem",
    "LoanService",
    "Member",
    "LoanStatus",
    "resolve_status",
]
