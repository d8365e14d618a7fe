import sqlite3
from typing import Optional

from loandesk.config import settings, resolve_database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database.

    The connection runs in autocommit mode; multi-statement writes open their
    own ``BEGIN IMMEDIATE`` block (see ``inventory.InventoryLedger.transaction``).
    """
    conn = sqlite3.connect(
        resolve_database_file(db_file),
        timeout=settings.database_timeout,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                publisher TEXT,
                year_published INTEGER,
                isbn TEXT,
                available_quantity INTEGER NOT NULL DEFAULT 0 CHECK (available_quantity >= 0),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Loans are never deleted; status only ever holds 'borrowed' or 'returned'
        conn.execute("""
            CREATE TABLE IF NOT EXISTS loans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id INTEGER NOT NULL,
                borrowed_on TEXT NOT NULL,
                due_on TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'borrowed' CHECK (status IN ('borrowed', 'returned')),
                returned_on TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                CHECK (due_on >= borrowed_on),
                CHECK ((status = 'returned') = (returned_on IS NOT NULL)),
                FOREIGN KEY (member_id) REFERENCES members(id)
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS loan_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                loan_id INTEGER NOT NULL,
                book_id INTEGER NOT NULL,
                quantity INTEGER NOT NULL CHECK (quantity >= 1),
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                FOREIGN KEY (loan_id) REFERENCES loans(id),
                FOREIGN KEY (book_id) REFERENCES books(id)
            )
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_loans_member_id ON loans(member_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_loans_status ON loans(status)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_loan_items_loan_id ON loan_items(loan_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_loan_items_book_id ON loan_items(book_id)")
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables when needed."""
    create_tables(db_file)
