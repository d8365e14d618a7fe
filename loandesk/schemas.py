"""Request and response models shared by the HTTP API, the CLI and the loan builder."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


# --- Requests ---
class LoanItemRequest(BaseModel):
    book_id: int
    quantity: int = Field(1, description="Copies to borrow; the service rejects values below 1")


class LoanRequest(BaseModel):
    """A complete loan submission: who borrows, for which dates, which books."""
    member_id: int
    borrowed_on: date
    due_on: date
    items: List[LoanItemRequest] = Field(default_factory=list)


class ReturnRequest(BaseModel):
    returned_on: Optional[date] = Field(default=None, description="Defaults to today")


class BookCreateModel(BaseModel):
    title: str
    author: str
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    isbn: Optional[str] = None
    quantity: int = Field(0, ge=0, description="Copies on the shelf when the book is added")


class MemberCreateModel(BaseModel):
    name: str
    email: str


# --- Responses ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    publisher: Optional[str] = None
    year_published: Optional[int] = None
    isbn: Optional[str] = None
    available_quantity: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MemberModel(BaseModel):
    id: int
    name: str
    email: str


class LoanItemModel(BaseModel):
    id: Optional[int] = None
    loan_id: Optional[int] = None
    book_id: int
    quantity: int
    title: str
    author: str


class LoanModel(BaseModel):
    id: int
    member_id: int
    member_name: Optional[str] = None
    borrowed_on: date
    due_on: date
    status: str  # borrowed | returned | overdue, resolved at read time
    stored_status: str
    returned_on: Optional[date] = None
    created_at: Optional[str] = None
    items: Optional[List[LoanItemModel]] = None
