import os
import tempfile
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8080"))
    api_token: str = os.getenv("API_TOKEN", "loandesk-dev-token")

    # Database settings
    database_file: Optional[str] = os.getenv("LOANDESK_DB_FILE")
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5"))  # seconds to wait for the write lock

    # Loan settings
    default_loan_days: int = int(os.getenv("DEFAULT_LOAN_DAYS", "7"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Loan Desk")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    environment: str = os.getenv("ENVIRONMENT", "development")


settings = Settings()


def resolve_database_file(db_file: Optional[str] = None) -> str:
    """Pick the SQLite file to use.

    Order: explicit argument, LOANDESK_DB_FILE read at call time, the value
    captured in settings, then a per-process file in the temp directory.
    """
    return (
        db_file
        or os.environ.get("LOANDESK_DB_FILE")
        or settings.database_file
        or os.path.join(tempfile.gettempdir(), f"loandesk_{os.getpid()}.db")
    )
