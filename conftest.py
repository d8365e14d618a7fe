import os
import pytest

from loandesk.book import Book
from loandesk.desk import LoanDesk

@pytest.fixture
def desk(tmp_path, request):
    # Give every test its own database file
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    desk = LoanDesk(db_file=db_file)
    yield desk
    desk.close()
    if os.path.exists(db_file):
        os.remove(db_file)

@pytest.fixture
def member(desk):
    return desk.members.add_member("Siti Rahma", "siti@example.com")

@pytest.fixture
def books(desk):
    """Three titles: two copies, five copies, and one with none on the shelf."""
    return [
        desk.catalog.add_book(Book("Laskar Pelangi", "Andrea Hirata", available_quantity=2, publisher="Bentang")),
        desk.catalog.add_book(Book("Bumi Manusia", "Pramoedya Ananta Toer", available_quantity=5)),
        desk.catalog.add_book(Book("Cantik Itu Luka", "Eka Kurniawan", available_quantity=0)),
    ]
