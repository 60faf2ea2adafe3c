"""
Core module - Foundation components for brokerstat.

Provides:
- Exception hierarchy shared by parsers and analysers
- CurrencyConverter: Exchange rate contract and stored-rate implementation
- Settings: JSON configuration with defaults
"""

from brokerstat.core.exceptions import (
    BrokerStatError,
    StatementError,
    FormatError,
    MissingSectionError,
    ParseError,
    OrderingError,
    RateUnavailableError,
    InsufficientDataError,
)
from brokerstat.core.currency import (
    CurrencyConverter,
    StoredRateConverter,
    ExchangeRate,
    ensure_rates_table,
)
from brokerstat.core.config import Settings, DEFAULT_SETTINGS

__all__ = [
    "BrokerStatError",
    "StatementError",
    "FormatError",
    "MissingSectionError",
    "ParseError",
    "OrderingError",
    "RateUnavailableError",
    "InsufficientDataError",
    "CurrencyConverter",
    "StoredRateConverter",
    "ExchangeRate",
    "ensure_rates_table",
    "Settings",
    "DEFAULT_SETTINGS",
]
