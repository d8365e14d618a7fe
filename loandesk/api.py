import sqlite3
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from loandesk.book import Book
from loandesk.config import settings
from loandesk.database import get_db_connection
from loandesk.desk import LoanDesk
from loandesk.errors import (
    AlreadyReturned,
    InsufficientStock,
    LedgerBusy,
    LoanDeskError,
    NotFound,
    Unselectable,
    ValidationError,
)
from loandesk.schemas import (
    BookCreateModel,
    BookModel,
    LoanModel,
    LoanRequest,
    MemberCreateModel,
    MemberModel,
    ReturnRequest,
)


desk = LoanDesk()

app = FastAPI(title=settings.app_name, version=settings.app_version)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error mapping ---
_STATUS_BY_ERROR = [
    (ValidationError, 422),
    (NotFound, 404),
    (InsufficientStock, 409),
    (AlreadyReturned, 409),
    (Unselectable, 409),
    (LedgerBusy, 503),
]


@app.exception_handler(LoanDeskError)
async def loan_desk_error_handler(request: Request, exc: LoanDeskError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})

# --- Security ---
bearer_scheme = HTTPBearer()


def get_token(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)):
    """Dependency that checks the bearer token. Token issuance lives outside this service."""
    if credentials.credentials == settings.api_token:
        return credentials.credentials
    raise HTTPException(
        status_code=403,
        detail="Could not validate credentials",
    )


# --- Health ---
@app.get("/health")
def health():
    """Lightweight health endpoint with a quick database round trip."""
    db_ok = True
    try:
        conn = get_db_connection(desk.db_file)
        conn.execute("SELECT 1")
        conn.close()
    except sqlite3.Error:
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "db": db_ok,
        "version": settings.app_version,
    }


# --- Members ---
@app.get("/members", response_model=List[MemberModel], dependencies=[Depends(get_token)])
def list_members():
    return [MemberModel(**m.to_dict()) for m in desk.loans.list_members()]


@app.post("/members", response_model=MemberModel, status_code=201, dependencies=[Depends(get_token)])
def add_member(payload: MemberCreateModel):
    try:
        member = desk.members.add_member(payload.name, payload.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MemberModel(**member.to_dict())


# --- Books ---
@app.get("/books", response_model=List[BookModel], dependencies=[Depends(get_token)])
def list_books(available: bool = Query(False, description="Only books with copies on the shelf")):
    books = desk.loans.list_available_books() if available else desk.catalog.list_books()
    return [BookModel(**b.to_dict()) for b in books]


@app.get("/books/{book_id}", response_model=BookModel, dependencies=[Depends(get_token)])
def get_book(book_id: int):
    book = desk.catalog.find_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return BookModel(**book.to_dict())


@app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_token)])
def add_book(payload: BookCreateModel):
    book = Book(
        title=payload.title,
        author=payload.author,
        available_quantity=payload.quantity,
        publisher=payload.publisher,
        year_published=payload.year_published,
        isbn=payload.isbn,
    )
    try:
        desk.catalog.add_book(book)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BookModel(**book.to_dict())


# --- Loans ---
@app.get("/loans", response_model=List[LoanModel], dependencies=[Depends(get_token)])
def list_loans(
    member_id: Optional[int] = Query(None, description="Only loans of this member"),
    status: Optional[str] = Query(None, description="borrowed | returned | overdue"),
    include_items: bool = Query(False, description="Attach each loan's book lines"),
):
    """Loan summaries. Item lines are fetched per loan only when asked for."""
    today = date.today()
    loans = desk.loans.list_loans(member_id=member_id, status=status,
                                  include_items=include_items, today=today)
    return [LoanModel(**loan.to_dict(today)) for loan in loans]


@app.get("/loans/{loan_id}", response_model=LoanModel, dependencies=[Depends(get_token)])
def get_loan(loan_id: int):
    return LoanModel(**desk.loans.get_loan(loan_id).to_dict())


@app.post("/loans", response_model=LoanModel, status_code=201, dependencies=[Depends(get_token)])
def create_loan(payload: LoanRequest):
    loan = desk.loans.create_loan_from_request(payload)
    return LoanModel(**loan.to_dict())


@app.put("/loans/{loan_id}/return", response_model=LoanModel, dependencies=[Depends(get_token)])
def return_loan(loan_id: int, payload: Optional[ReturnRequest] = None):
    returned_on = payload.returned_on if payload else None
    loan = desk.loans.return_loan(loan_id, returned_on)
    return LoanModel(**loan.to_dict())
