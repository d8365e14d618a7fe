import re
from datetime import date
from typing import Optional, Tuple


class ISBNValidator:
    """ISBN checks for the catalog. Books are stored under their ISBN-13 so the
    ISBN-10 and ISBN-13 of one edition count as the same book."""

    ISBN10_RE = re.compile(r"^\d{9}[\dX]$")

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        return re.sub(r"[^0-9X]", "", (raw or "").upper())

    @staticmethod
    def _ean13_check_digit(first12: str) -> str:
        total = sum(int(c) * (3 if i % 2 else 1) for i, c in enumerate(first12))
        return str((10 - total % 10) % 10)

    @classmethod
    def is_valid_isbn(cls, isbn: Optional[str]) -> bool:
        s = cls.normalize_isbn(isbn)
        if len(s) == 10:
            if not cls.ISBN10_RE.match(s):
                return False
            digits = [10 if c == "X" else int(c) for c in s]
            return sum((10 - i) * d for i, d in enumerate(digits)) % 11 == 0
        return len(s) == 13 and s.isdigit() and cls._ean13_check_digit(s[:12]) == s[12]

    @classmethod
    def canonical_isbn(cls, isbn: Optional[str]) -> str:
        """The ISBN-13 of a valid ISBN-10 or ISBN-13; ValueError otherwise."""
        s = cls.normalize_isbn(isbn)
        if not cls.is_valid_isbn(s):
            raise ValueError(f"Invalid ISBN: {isbn}")
        if len(s) == 10:
            body = "978" + s[:9]
            return body + cls._ean13_check_digit(body)
        return s


class TextValidator:
    """Basic checks for names, titles and emails."""

    EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        return title is not None and bool(title.strip())

    @staticmethod
    def validate_author(author: Optional[str]) -> bool:
        # must not be digits only
        if author is None:
            return False
        t = author.strip()
        if not t:
            return False
        return not t.isdigit()

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        return email is not None and bool(TextValidator.EMAIL_RE.match(email.strip()))


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD, raising ValueError with a readable message."""
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD.") from e


def parse_item_spec(spec: str) -> Tuple[int, int]:
    """Parse a CLI item of the form ``BOOK_ID`` or ``BOOK_ID:QUANTITY``."""
    book_part, _, qty_part = spec.partition(":")
    try:
        book_id = int(book_part)
        quantity = int(qty_part) if qty_part else 1
    except ValueError as e:
        raise ValueError(f"Invalid item {spec!r}, expected BOOK_ID or BOOK_ID:QUANTITY.") from e
    return book_id, quantity
