import os
import json
from datetime import date
from typing import List, Any, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LOANDESK_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_books_result(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author (N available)' lines, or 'No books in library.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Publisher", style="dim")
        table.add_column("Available", justify="right")
        for b in books:
            style = "green" if b.available_quantity > 0 else "red"
            table.add_row(str(b.id), b.title, b.author, b.publisher or "",
                          f"[{style}]{b.available_quantity}[/]")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} ({b.available_quantity} available)")

def print_members_result(members: List[Any]) -> None:
    mode = get_output_mode()

    if not members:
        print("No members registered.")
        return

    if mode == "json":
        print(json.dumps([m.to_dict() for m in members], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👤 Members", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name")
        table.add_column("Email", style="dim")
        for m in members:
            table.add_row(str(m.id), m.name, m.email)
        _console.print(table)
    else:
        for m in members:
            print(f"{m.id} - {m.name} <{m.email}>")

_STATUS_STYLES = {"borrowed": "yellow", "returned": "green", "overdue": "bold red"}

def print_loans_result(loans: List[Any], today: Optional[date] = None) -> None:
    """Print loan summaries; item lines are shown only when they were fetched."""
    mode = get_output_mode()

    if not loans:
        print("No loans recorded.")
        return

    if mode == "json":
        print(json.dumps([l.to_dict(today) for l in loans], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📖 Loans", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Member")
        table.add_column("Borrowed")
        table.add_column("Due")
        table.add_column("Status")
        table.add_column("Books")
        for l in loans:
            status = l.display_status(today).value
            books = "\n".join(f"{i.quantity} x {i.title}" for i in l.items or [])
            table.add_row(str(l.id), l.member_name or str(l.member_id), l.borrowed_on.isoformat(),
                          l.due_on.isoformat(), f"[{_STATUS_STYLES[status]}]{status}[/]", books)
        _console.print(table)
    else:
        for l in loans:
            print(f"#{l.id} {l.member_name or l.member_id} {l.borrowed_on.isoformat()} -> "
                  f"{l.due_on.isoformat()} [{l.display_status(today).value}]")
            for i in l.items or []:
                print(f"    {i.quantity} x {i.title} ({i.author})")

def print_loan_detail(loan: Any, today: Optional[date] = None) -> None:
    mode = get_output_mode()
    status = loan.display_status(today).value

    if mode == "json":
        print(json.dumps(loan.to_dict(today), ensure_ascii=False))
    elif mode == "rich":
        lines = [
            f"[bold]Member:[/] {loan.member_name or loan.member_id}",
            f"[bold]Borrowed:[/] {loan.borrowed_on.isoformat()}",
            f"[bold]Due:[/] {loan.due_on.isoformat()}",
            f"[bold]Status:[/] [{_STATUS_STYLES[status]}]{status}[/]",
        ]
        if loan.returned_on:
            lines.append(f"[bold]Returned:[/] {loan.returned_on.isoformat()}")
        for i in loan.items or []:
            lines.append(f"  • {i.quantity} x {i.title} - {i.author}")
        _console.print(Panel.fit("\n".join(lines), title=f"Loan #{loan.id}", border_style="blue"))
    else:
        print(f"Loan #{loan.id}")
        print(f"Member: {loan.member_name or loan.member_id}")
        print(f"Borrowed: {loan.borrowed_on.isoformat()}")
        print(f"Due: {loan.due_on.isoformat()}")
        print(f"Status: {status}")
        if loan.returned_on:
            print(f"Returned: {loan.returned_on.isoformat()}")
        for i in loan.items or []:
            print(f"  {i.quantity} x {i.title} ({i.author})")
