# src/tradewatch/config.py
"""
Runtime settings for the trade monitor.

Values are read from the environment (and an optional `.env` file). Anything
that would make the monitor unsafe to start is rejected here with a
`ConfigurationError`; nothing downstream re-validates these values.
"""

import json
import re
from typing import List, Optional, Tuple

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradewatch.errors import ConfigurationError

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_address(address: str) -> bool:
    return bool(ADDRESS_RE.match(address or ""))


def parse_account_list(raw: Optional[str]) -> List[Tuple[str, Optional[str]]]:
    """
    Parse an account list given either as a JSON array or as a comma separated
    string. Each entry is `address` or `address:display name`.

    Returns (lower-cased address, display name or None) pairs, order preserved,
    duplicates removed.
    """
    if raw is None:
        return []
    text = raw.strip()
    if not text:
        return []

    if text.startswith("[") and text.endswith("]"):
        try:
            items = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format for account list: {e}")
        if not isinstance(items, list):
            raise ConfigurationError("Account list JSON must be an array")
        entries = [str(item) for item in items]
    else:
        entries = text.split(",")

    parsed: List[Tuple[str, Optional[str]]] = []
    seen = set()
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        address, _, name = entry.partition(":")
        address = address.strip().lower()
        if not is_valid_address(address):
            raise ConfigurationError(f"Invalid Ethereum address in account list: {address}")
        if address in seen:
            continue
        seen.add(address)
        parsed.append((address, name.strip() or None))
    return parsed


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment / DB
    ENV: str = Field(default="dev")
    DATABASE_URL: str = Field(default="sqlite:///./tradewatch.db")

    # Upstream data API
    DATA_API_BASE: str = "https://data-api.polymarket.com"
    REQUEST_TIMEOUT_MS: int = 10000

    # Monitored accounts
    TRACKED_ACCOUNTS: str = ""
    FAST_CYCLE_ACCOUNTS: str = ""
    FAST_CYCLE_STALENESS_SECONDS: int = 15 * 60

    # Polling
    FETCH_INTERVAL: int = 1
    TOO_OLD_TIMESTAMP: int = 24
    BOOTSTRAP_LOOKBACK_MINUTES: Optional[int] = None
    BATCH_SIZE: int = 10
    SHUTDOWN_GRACE_SECONDS: float = 2.0

    # Sub-kind filters (micro-interval up/down markets)
    ENABLE_15MIN_UPDOWN_TRADES: bool = False
    ENABLE_5MIN_UPDOWN_TRADES: bool = False

    # Log suppression sets; 0 keeps entries for the process lifetime
    SUPPRESSION_TTL_HOURS: int = 0

    # Observability
    LOG_DIR: Optional[str] = None
    METRICS_ENABLED: bool = True
    METRICS_PORT: int = 9108

    @field_validator("FETCH_INTERVAL")
    @classmethod
    def _v_fetch_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Invalid FETCH_INTERVAL: {v}. Must be a positive integer.")
        return v

    @field_validator("TOO_OLD_TIMESTAMP")
    @classmethod
    def _v_too_old(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid TOO_OLD_TIMESTAMP: {v}. Must be a positive integer (hours).")
        return v

    @field_validator("REQUEST_TIMEOUT_MS")
    @classmethod
    def _v_timeout(cls, v: int) -> int:
        if v < 1000:
            raise ValueError(f"Invalid REQUEST_TIMEOUT_MS: {v}. Must be at least 1000ms.")
        return v

    @field_validator("BATCH_SIZE")
    @classmethod
    def _v_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid BATCH_SIZE: {v}. Must be at least 1.")
        return v

    @field_validator("FAST_CYCLE_STALENESS_SECONDS", "SUPPRESSION_TTL_HOURS")
    @classmethod
    def _v_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Must not be negative.")
        return v

    @field_validator("DATA_API_BASE")
    @classmethod
    def _v_api_base(cls, v: str) -> str:
        if not v.startswith("http"):
            raise ValueError(f"Invalid DATA_API_BASE: {v}. Must be a valid HTTP/HTTPS URL.")
        return v.rstrip("/")

    @model_validator(mode="after")
    def _v_lookback(self) -> "Settings":
        if self.BOOTSTRAP_LOOKBACK_MINUTES is None:
            self.BOOTSTRAP_LOOKBACK_MINUTES = self.TOO_OLD_TIMESTAMP * 60
        elif self.BOOTSTRAP_LOOKBACK_MINUTES < 1:
            raise ValueError("BOOTSTRAP_LOOKBACK_MINUTES must be at least 1.")
        return self

    @property
    def tracked_accounts(self) -> List[Tuple[str, Optional[str]]]:
        return parse_account_list(self.TRACKED_ACCOUNTS)

    @property
    def fast_cycle_accounts(self) -> List[str]:
        return [address for address, _ in parse_account_list(self.FAST_CYCLE_ACCOUNTS)]


def load_settings(**overrides) -> Settings:
    """Build settings, turning validation failures into `ConfigurationError`."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
