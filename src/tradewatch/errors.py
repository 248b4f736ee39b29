# src/tradewatch/errors.py
"""
Exception hierarchy for the monitor.

Operational errors (network hiccups, ledger outages) are expected at runtime and
are logged and absorbed at the account boundary. Only `ConfigurationError` is
allowed to stop the process.
"""

from typing import Any, Optional


class TradeWatchError(Exception):
    """Base class for all application errors."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, is_operational: bool = True):
        super().__init__(message)
        self.message = message
        self.is_operational = is_operational


class ConfigurationError(TradeWatchError):
    """Environment or settings are invalid; the process must not start."""

    code = "CONFIG_ERROR"


class NetworkError(TradeWatchError):
    """An upstream API call failed."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, original_error: Optional[BaseException] = None, url: Optional[str] = None):
        super().__init__(message)
        self.original_error = original_error
        self.url = url


class LedgerError(TradeWatchError):
    """A ledger read or write failed."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class BootstrapStateError(TradeWatchError):
    """An illegal bootstrap phase transition was attempted."""

    code = "BOOTSTRAP_STATE_ERROR"

    def __init__(self, message: str):
        super().__init__(message, is_operational=False)


def is_operational_error(error: Any) -> bool:
    if isinstance(error, TradeWatchError):
        return error.is_operational
    return False
