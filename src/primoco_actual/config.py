"""
Configuration management (SSOT).

This module defines ALL configuration for the importer.
All config keys are defined here; no other module should invent config keys.

Precedence (highest first): CLI flags, environment variables, YAML file,
defaults. Required values are checked by Config.validate() before the
pipeline starts.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_BATCH_SIZE = 1000
DEFAULT_CATEGORY_GROUP = "Imported"
DEFAULT_DATE_FORMAT = "%d.%m.%Y"
SUPPORTED_DATE_FORMATS = ("%d.%m.%Y", "%d.%m.%y")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


def _parse_flag(value: Any, default: bool = False) -> bool:
    """Booleans pass through; "true"/"false" text in any case is converted."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "true":
            return True
        if text == "false":
            return False
    return default


def _env_flag(name: str, default: bool) -> bool:
    """Read a true/false environment variable, keeping the default otherwise."""
    return _parse_flag(os.environ.get(name), default)


@dataclass
class ActualConfig:
    """Actual Budget server configuration.

    - base_url: actual-http-api bridge URL
    - api_key: bridge API key
    - sync_id: budget to import into
    - encryption_password: only for end-to-end encrypted budgets
    """

    base_url: str
    api_key: str
    sync_id: str
    encryption_password: str | None = None
    timeout_seconds: int = 60


@dataclass
class ImportConfig:
    """Import run settings."""

    csv_path: Path | None = None
    # Mark imported transactions as cleared
    mark_cleared: bool = False
    # Give exact duplicate rows distinct imported_ids so all get imported
    force_duplicates: bool = False
    # strptime format of the Date column ("%d.%m.%y" for two-digit years)
    date_format: str = DEFAULT_DATE_FORMAT
    # Postings per import call
    batch_size: int = DEFAULT_BATCH_SIZE
    # Parallel account/category creation calls
    max_workers: int = 4
    # Expense category group for newly created categories
    category_group: str = DEFAULT_CATEGORY_GROUP
    # Extra mojibake replacements, merged over the built-in table
    encoding_fixes: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Application configuration (SSOT)."""

    actual: ActualConfig
    import_: ImportConfig = field(default_factory=ImportConfig)
    verbose: bool = False

    def validate(self, require_source: bool = True) -> list[str]:
        """Validate configuration completeness and consistency.

        Args:
            require_source: Whether a CSV path is required (not for `sync`)

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.actual.base_url:
            errors.append("actual.base_url is required")
        if not self.actual.api_key:
            errors.append("actual.api_key is required")
        if not self.actual.sync_id:
            errors.append("actual.sync_id is required")

        if require_source and not self.import_.csv_path:
            errors.append("import.csv_path is required")

        if self.import_.batch_size < 1:
            errors.append("import.batch_size must be >= 1")
        if self.import_.max_workers < 1:
            errors.append("import.max_workers must be >= 1")
        if self.import_.date_format not in SUPPORTED_DATE_FORMATS:
            errors.append(
                f"import.date_format must be one of {', '.join(SUPPORTED_DATE_FORMATS)}"
            )
        if not self.import_.category_group.strip():
            errors.append("import.category_group must not be empty")

        return errors

    def ensure_valid(self, require_source: bool = True) -> None:
        """Raise ConfigValidationError listing every problem."""
        errors = self.validate(require_source=require_source)
        if errors:
            raise ConfigValidationError("; ".join(errors))


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables override config values:
    - ACTUAL_SERVER_URL
    - ACTUAL_API_KEY
    - ACTUAL_SYNC_ID
    - ACTUAL_E2E_PASSWORD
    - CSV_FILE_PATH
    - MARK_CLEARED (true/false)
    - FORCE_DUPLICATES (true/false)
    - DEBUG (true/false, verbose logging)
    """
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    actual_data = data.get("actual", {}) or {}
    actual = ActualConfig(
        base_url=os.environ.get(
            "ACTUAL_SERVER_URL", actual_data.get("base_url", "http://localhost:5007")
        ),
        api_key=os.environ.get("ACTUAL_API_KEY", actual_data.get("api_key", "")),
        sync_id=os.environ.get("ACTUAL_SYNC_ID", actual_data.get("sync_id", "")),
        encryption_password=os.environ.get(
            "ACTUAL_E2E_PASSWORD", actual_data.get("encryption_password")
        )
        or None,
        timeout_seconds=int(actual_data.get("timeout_seconds", 60)),
    )

    import_data = data.get("import", {}) or {}
    csv_path = os.environ.get("CSV_FILE_PATH", import_data.get("csv_path"))
    import_config = ImportConfig(
        csv_path=Path(csv_path) if csv_path else None,
        mark_cleared=_env_flag("MARK_CLEARED", _parse_flag(import_data.get("mark_cleared"))),
        force_duplicates=_env_flag(
            "FORCE_DUPLICATES", _parse_flag(import_data.get("force_duplicates"))
        ),
        date_format=import_data.get("date_format", DEFAULT_DATE_FORMAT),
        batch_size=int(import_data.get("batch_size", DEFAULT_BATCH_SIZE)),
        max_workers=int(import_data.get("max_workers", 4)),
        category_group=import_data.get("category_group", DEFAULT_CATEGORY_GROUP),
        encoding_fixes={
            str(k): str(v) for k, v in (import_data.get("encoding_fixes") or {}).items()
        },
    )

    return Config(
        actual=actual,
        import_=import_config,
        verbose=_env_flag("DEBUG", _parse_flag(data.get("verbose"))),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Primoco → Actual Budget importer configuration
#
# Environment variables override these values:
#   ACTUAL_SERVER_URL, ACTUAL_API_KEY, ACTUAL_SYNC_ID, ACTUAL_E2E_PASSWORD,
#   CSV_FILE_PATH, MARK_CLEARED, FORCE_DUPLICATES, DEBUG

actual:
  base_url: "http://localhost:5007"      # actual-http-api bridge
  api_key: "YOUR_API_KEY"
  sync_id: "YOUR_BUDGET_SYNC_ID"          # Settings → Advanced → Sync ID
  encryption_password: null               # Only for end-to-end encrypted budgets
  timeout_seconds: 60

import:
  csv_path: "export.csv"
  mark_cleared: false                     # Mark imported transactions as cleared
  force_duplicates: false                 # Import identical rows as separate transactions
  date_format: "%d.%m.%Y"                 # "%d.%m.%y" for two-digit years
  batch_size: 1000                        # Transactions per import call
  max_workers: 4                          # Parallel account/category creation
  category_group: "Imported"              # Group for new expense categories
  encoding_fixes: {}                      # Extra mojibake fixes, e.g. {"Ã¥": "å"}

verbose: false
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(default_config)
