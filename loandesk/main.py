import logging
import subprocess
import sys
from typing import List, Optional

import typer
from rich.console import Console

from loandesk.book import Book
from loandesk.config import settings, resolve_database_file
from loandesk.desk import LoanDesk
from loandesk.errors import LoanDeskError
from loandesk.ui_helpers import (
    set_output_mode,
    print_books_result,
    print_members_result,
    print_loans_result,
    print_loan_detail,
)
from loandesk.validators import parse_iso_date, parse_item_spec

APP_NAME = "Loan Desk CLI"

console = Console(stderr=True)


class DeskManager:
    """Holds one LoanDesk per database file."""
    _instance: Optional[LoanDesk] = None
    _db_file_snapshot: Optional[str] = None

    @classmethod
    def get_instance(cls) -> LoanDesk:
        current_db = resolve_database_file()
        # Rebuild when the database file changes (e.g. one database per test)
        if cls._instance is None or current_db != cls._db_file_snapshot:
            if cls._instance is not None:
                cls._instance.close()
            cls._instance = LoanDesk(current_db)
            cls._db_file_snapshot = current_db
        return cls._instance


def _fail(error: Exception) -> None:
    print(f"Error: {error}")
    raise typer.Exit(code=1)


def _parse_date_option(value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_iso_date(value)
    except ValueError as e:
        _fail(e)


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)

@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
):
    """Global CLI options (output mode, logging)."""
    if output:
        set_output_mode(output)
    level = logging.INFO if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

@app.command("books")
def cli_books(available: bool = typer.Option(False, "--available", "-a", help="Only books with copies on the shelf")):
    """List books with their available copies."""
    desk = DeskManager.get_instance()
    books = desk.loans.list_available_books() if available else desk.catalog.list_books()
    print_books_result(books)

@app.command("members")
def cli_members():
    """List library members."""
    print_members_result(DeskManager.get_instance().loans.list_members())

@app.command("add-book")
def cli_add_book(
    title: str,
    author: str,
    quantity: int = typer.Option(1, "--quantity", "-q", min=0, help="Copies on the shelf"),
    publisher: Optional[str] = typer.Option(None, "--publisher"),
    year: Optional[int] = typer.Option(None, "--year"),
    isbn: Optional[str] = typer.Option(None, "--isbn"),
):
    """Add a book to the catalog."""
    desk = DeskManager.get_instance()
    book = Book(title=title, author=author, available_quantity=quantity,
                publisher=publisher, year_published=year, isbn=isbn)
    try:
        desk.catalog.add_book(book)
    except ValueError as e:
        _fail(e)
    print(f"Added book #{book.id}: {book.title} by {book.author} ({book.available_quantity} available)")

@app.command("add-member")
def cli_add_member(name: str, email: str):
    """Register a member."""
    try:
        member = DeskManager.get_instance().members.add_member(name, email)
    except ValueError as e:
        _fail(e)
    print(f"Added member #{member.id}: {member.name} <{member.email}>")

@app.command("borrow")
def cli_borrow(
    member_id: int,
    item: List[str] = typer.Option(..., "--item", "-i", help="BOOK_ID or BOOK_ID:QUANTITY, repeatable"),
    borrowed: Optional[str] = typer.Option(None, "--borrowed", help="Borrow date, YYYY-MM-DD (default: today)"),
    due: Optional[str] = typer.Option(None, "--due", help=f"Due date, YYYY-MM-DD (default: +{settings.default_loan_days} days)"),
):
    """Stage books in a loan builder and submit them as one loan."""
    desk = DeskManager.get_instance()
    borrowed_on = _parse_date_option(borrowed)
    due_on = _parse_date_option(due)
    builder = desk.new_builder()
    try:
        for spec in item:
            book_id, quantity = parse_item_spec(spec)
            builder.select(book_id)
            warning = builder.set_quantity(book_id, quantity)
            if warning:
                print(f"Warning: {warning}")
        request = builder.to_request(member_id, borrowed_on, due_on)
        loan = desk.loans.create_loan_from_request(request)
    except (LoanDeskError, ValueError) as e:
        _fail(e)
    print(f"Loan #{loan.id} created.")
    print_loan_detail(loan)

@app.command("return")
def cli_return(loan_id: int, on: Optional[str] = typer.Option(None, "--on", help="Return date, YYYY-MM-DD (default: today)")):
    """Return every book of a loan."""
    returned_on = _parse_date_option(on)
    try:
        loan = DeskManager.get_instance().loans.return_loan(loan_id, returned_on)
    except LoanDeskError as e:
        _fail(e)
    print(f"Loan #{loan.id} returned on {loan.returned_on.isoformat()}.")

@app.command("loans")
def cli_loans(
    member: Optional[int] = typer.Option(None, "--member", "-m", help="Only loans of this member"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="borrowed | returned | overdue"),
    details: bool = typer.Option(False, "--details", "-d", help="Show the books of each loan"),
):
    """List loans, newest first."""
    try:
        loans = DeskManager.get_instance().loans.list_loans(member_id=member, status=status, include_items=details)
    except LoanDeskError as e:
        _fail(e)
    print_loans_result(loans)

@app.command("show")
def cli_show(loan_id: int):
    """Show one loan with its books."""
    try:
        loan = DeskManager.get_instance().loans.get_loan(loan_id)
    except LoanDeskError as e:
        _fail(e)
    print_loan_detail(loan)

@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
):
    """Start the HTTP API with uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "loandesk.api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped.[/]")


if __name__ == "__main__":
    app()
