"""Environment-driven settings."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///housing.db"
DEFAULT_SALES_TABLE = "nashville_housing"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the cleaning pipeline."""

    database_url: str = DEFAULT_DATABASE_URL
    sales_table: str = DEFAULT_SALES_TABLE
    log_level: str = "INFO"
    log_json: bool = True


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_settings(env_file: str = None) -> Settings:
    """Build settings from the environment.

    Variables from ``env_file`` (or a ``.env`` in the working directory) are
    loaded first without overriding variables already set.

    Environment:
        DATABASE_URL: SQLAlchemy URL of the store
        SALES_TABLE: Name of the sales table
        LOG_LEVEL: Root log level
        LOG_JSON: Emit JSON log lines (default true)
    """
    load_dotenv(env_file)

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        sales_table=os.getenv("SALES_TABLE", DEFAULT_SALES_TABLE),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_flag("LOG_JSON", True),
    )
