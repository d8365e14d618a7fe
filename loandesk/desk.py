from typing import Optional

from loandesk.builder import LoanBuilder
from loandesk.catalog import Catalog
from loandesk.config import resolve_database_file
from loandesk.database import initialize_database
from loandesk.inventory import InventoryLedger
from loandesk.loans import LoanService
from loandesk.members import MemberDirectory


class LoanDesk:
    """Wires the catalog, member directory, inventory ledger and loan service to one database."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        # Pin the file now so later changes to LOANDESK_DB_FILE do not split one desk across databases
        self.db_file = resolve_database_file(db_file)
        initialize_database(self.db_file)

        self.catalog = Catalog(self.db_file)
        self.members = MemberDirectory(self.db_file)
        self.ledger = InventoryLedger(self.db_file)
        self.loans = LoanService(self.members, self.catalog, self.ledger, self.db_file)

    def new_builder(self) -> LoanBuilder:
        """A loan builder over a fresh snapshot of the catalog; books with no copies stay visible but unselectable."""
        return LoanBuilder(self.catalog.list_books())

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing to release."""
        return None
