from __future__ import annotations


class Book:
    """A catalog title and the number of copies currently on the shelf."""

    def __init__(self, title: str, author: str, available_quantity: int = 0, id: int | None = None,
                 publisher: str | None = None, year_published: int | None = None, isbn: str | None = None,
                 created_at: str | None = None, updated_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.available_quantity = available_quantity
        self.publisher = publisher
        self.year_published = year_published
        self.isbn = isbn
        self.created_at = created_at
        self.updated_at = updated_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.available_quantity} available)"

    @property
    def is_available(self) -> bool:
        return self.available_quantity > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "publisher": self.publisher,
            "year_published": self.year_published,
            "isbn": self.isbn,
            "available_quantity": self.available_quantity,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            available_quantity=int(data.get("available_quantity") or 0),
            publisher=data.get("publisher"),
            year_published=data.get("year_published"),
            isbn=data.get("isbn"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
