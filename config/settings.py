"""Application settings loaded from .env file."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from dotenv import load_dotenv

ENVIRONMENTS = ("dev", "prod")


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    """Central configuration for the wealth tracker stores."""

    # Paths
    project_root: Path = field(default_factory=_project_root)
    environment: str = "dev"
    ledger_path: Path = field(default=None)
    rates_path: Path = field(default=None)
    backup_dir: Path | None = None
    log_dir: Path = field(default=None)

    # Logging
    log_level: str = "INFO"

    # Backfill
    base_currency: str = "EUR"

    def __post_init__(self):
        if self.environment not in ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment '{self.environment}': expected one of {', '.join(ENVIRONMENTS)}"
            )
        data_dir = self.project_root / "data" / self.environment
        if self.ledger_path is None:
            self.ledger_path = data_dir / "ledger.db"
        if self.rates_path is None:
            self.rates_path = data_dir / "rates.db"
        if self.log_dir is None:
            self.log_dir = self.project_root / "data" / "logs"

        # Ensure directories exist (the store files themselves are not created here)
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        self.rates_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def _optional_path(key: str) -> Path | None:
    value = os.getenv(key)
    return Path(value) if value else None


def load_settings(environment: str | None = None) -> Settings:
    """Build settings from .env and the environment, without caching.

    An explicit *environment* wins over ``APP_ENV``.
    """
    root = _project_root()
    load_dotenv(root / ".env")

    return Settings(
        project_root=root,
        environment=environment or os.getenv("APP_ENV", "dev"),
        ledger_path=_optional_path("LEDGER_DB_PATH"),
        rates_path=_optional_path("RATES_DB_PATH"),
        backup_dir=_optional_path("BACKUP_DIR"),
        log_dir=_optional_path("LOG_DIR"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def get_settings() -> Settings:
    """Load settings from .env or environment, cached for the process."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
