from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loandesk.database import get_db_connection
from loandesk.validators import TextValidator

logger = logging.getLogger(__name__)


@dataclass
class Member:
    id: int
    name: str
    email: str
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


class MemberDirectory:
    """Read access to library members, plus registration for seeding."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def add_member(self, name: str, email: str) -> Member:
        if not name or not name.strip():
            raise ValueError("Name cannot be empty.")
        if not TextValidator.validate_email(email):
            raise ValueError(f"Invalid email: {email!r}")
        name, email = name.strip(), email.strip()

        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "INSERT INTO members (name, email) VALUES (?, ?)", (name, email)
            )
            member_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Member with email {email} already exists.") from e
        finally:
            conn.close()
        logger.info(f"Member added: id={member_id}, email={email}")
        return self.get_member(member_id)

    def get_member(self, member_id: int) -> Optional[Member]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT id, name, email, created_at FROM members WHERE id = ?", (member_id,)
            ).fetchone()
            return Member(**dict(row)) if row else None
        finally:
            conn.close()

    def list_members(self) -> List[Member]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute(
                "SELECT id, name, email, created_at FROM members ORDER BY name, id"
            ).fetchall()
            return [Member(**dict(row)) for row in rows]
        finally:
            conn.close()
