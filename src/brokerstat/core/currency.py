"""
Multi-currency support with exchange rate lookup.

CurrencyConverter is the contract consumed by the performance analyser.
StoredRateConverter implements it on top of an exchange_rates table.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
import logging
import sqlite3

from brokerstat.core.config import Settings
from brokerstat.core.exceptions import RateUnavailableError

logger = logging.getLogger(__name__)


EXCHANGE_RATES_SCHEMA = """
CREATE TABLE IF NOT EXISTS exchange_rates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date DATE NOT NULL,
    from_currency TEXT NOT NULL,
    to_currency TEXT NOT NULL,
    rate DECIMAL(10,6) NOT NULL,
    source TEXT DEFAULT 'MANUAL',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(date, from_currency, to_currency)
)
"""


def ensure_rates_table(conn: sqlite3.Connection) -> None:
    """Create the exchange_rates table if it doesn't exist yet."""
    conn.execute(EXCHANGE_RATES_SCHEMA)
    conn.commit()


@dataclass(frozen=True)
class ExchangeRate:
    """Represents an exchange rate record."""

    date: date
    from_currency: str
    to_currency: str
    rate: Decimal
    source: str

    @classmethod
    def from_row(cls, row) -> "ExchangeRate":
        """Create ExchangeRate from a (date, from, to, rate, source) row."""
        rate_date, from_currency, to_currency, rate, source = row
        return cls(
            date=date.fromisoformat(rate_date) if isinstance(rate_date, str) else rate_date,
            from_currency=from_currency,
            to_currency=to_currency,
            rate=Decimal(str(rate)),
            source=source,
        )


class CurrencyConverter(ABC):
    """
    Currency rate contract.

    Rates are units of quote currency per 1 base currency. Both methods
    raise RateUnavailableError when no quote exists. Identical calls must
    return identical results, so implementations are free to memoize.
    """

    @abstractmethod
    def historical_rate(self, base: str, quote: str, rate_date: date) -> Decimal:
        """Get the rate for a specific date."""

    @abstractmethod
    def real_time_rate(self, base: str, quote: str) -> Decimal:
        """Get the current rate."""

    def convert(
        self,
        amount: Decimal,
        base: str,
        quote: str,
        rate_date: Optional[date] = None,
    ) -> Decimal:
        """
        Convert amount from base to quote currency.

        Args:
            amount: Amount in base currency
            base: Source currency
            quote: Target currency
            rate_date: Date for historical rate lookup, real-time rate if None

        Returns:
            Converted amount (not rounded)
        """
        if rate_date is None:
            rate = self.real_time_rate(base, quote)
        else:
            rate = self.historical_rate(base, quote, rate_date)
        return amount * rate


class StoredRateConverter(CurrencyConverter):
    """
    Currency conversion using stored exchange rates.

    Rate lookup priority:
    1. Exact date match
    2. Nearest previous rate (within max_lookback_days)
    3. Inverse pair (1 / rate) with the same priority

    Usage:
        converter = StoredRateConverter(connection)
        converter.add_rate(date(2024, 6, 14), "USD", "RUB", Decimal("89.10"))

        rub = converter.convert(Decimal("100"), "USD", "RUB", date(2024, 6, 15))
        # Uses the 2024-06-14 rate: Decimal("8910.00")
    """

    MAX_LOOKBACK_DAYS = 7

    def __init__(
        self,
        db_connection: sqlite3.Connection,
        max_lookback_days: int = MAX_LOOKBACK_DAYS,
        real_time_source: Optional[Callable[[str, str], Optional[Decimal]]] = None,
    ):
        """
        Initialize the currency converter.

        Args:
            db_connection: SQLite database connection
            max_lookback_days: Maximum days to look back for a rate
            real_time_source: Optional callable (base, quote) -> rate for live quotes
        """
        self.conn = db_connection
        self.max_lookback_days = max_lookback_days
        self.real_time_source = real_time_source

    @classmethod
    def from_settings(
        cls,
        db_connection: sqlite3.Connection,
        settings: Settings,
        real_time_source: Optional[Callable[[str, str], Optional[Decimal]]] = None,
    ) -> "StoredRateConverter":
        return cls(
            db_connection,
            max_lookback_days=settings.rates.max_lookback_days,
            real_time_source=real_time_source,
        )

    def add_rate(
        self,
        rate_date: date,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        source: str = "MANUAL",
    ) -> int:
        """
        Add or update an exchange rate.

        Args:
            rate_date: Date of the rate
            from_currency: Source currency (e.g., "USD")
            to_currency: Target currency (e.g., "RUB")
            rate: Units of to_currency per 1 from_currency
            source: Rate source

        Returns:
            Exchange rate record ID
        """
        if not isinstance(rate, Decimal):
            rate = Decimal(str(rate))

        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT OR REPLACE INTO exchange_rates
            (date, from_currency, to_currency, rate, source)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                rate_date.isoformat(),
                from_currency.upper(),
                to_currency.upper(),
                str(rate),
                source,
            ),
        )

        self.conn.commit()
        return cursor.lastrowid

    def bulk_add_rates(self, rates: List[ExchangeRate]) -> int:
        """
        Add multiple exchange rates at once.

        Args:
            rates: List of ExchangeRate records

        Returns:
            Number of rates added
        """
        cursor = self.conn.cursor()
        for rate in rates:
            cursor.execute(
                """
                INSERT OR REPLACE INTO exchange_rates
                (date, from_currency, to_currency, rate, source)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    rate.date.isoformat(),
                    rate.from_currency.upper(),
                    rate.to_currency.upper(),
                    str(rate.rate),
                    rate.source,
                ),
            )

        self.conn.commit()
        return len(rates)

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        as_of_date: date,
    ) -> Optional[ExchangeRate]:
        """
        Get the rate for a date, falling back to the nearest previous rate.

        Returns:
            ExchangeRate or None if not found within the lookback window
        """
        earliest_date = as_of_date - timedelta(days=self.max_lookback_days)
        cursor = self.conn.execute(
            """
            SELECT date, from_currency, to_currency, rate, source
            FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ?
            AND date <= ? AND date >= ?
            ORDER BY date DESC
            LIMIT 1
            """,
            (
                from_currency.upper(),
                to_currency.upper(),
                as_of_date.isoformat(),
                earliest_date.isoformat(),
            ),
        )
        row = cursor.fetchone()
        if row:
            return ExchangeRate.from_row(tuple(row))
        return None

    def get_latest_rate(self, from_currency: str, to_currency: str) -> Optional[ExchangeRate]:
        """Get the most recent stored rate for a pair."""
        cursor = self.conn.execute(
            """
            SELECT date, from_currency, to_currency, rate, source
            FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ?
            ORDER BY date DESC
            LIMIT 1
            """,
            (from_currency.upper(), to_currency.upper()),
        )
        row = cursor.fetchone()
        if row:
            return ExchangeRate.from_row(tuple(row))
        return None

    def historical_rate(self, base: str, quote: str, rate_date: date) -> Decimal:
        """
        Get exchange rate for a specific date.

        Raises:
            RateUnavailableError: If neither the pair nor its inverse is stored
        """
        if base.upper() == quote.upper():
            return Decimal("1")

        record = self.get_rate(base, quote, rate_date)
        if record:
            return record.rate

        inverse = self.get_rate(quote, base, rate_date)
        if inverse and inverse.rate:
            logger.debug(f"Using inverse {quote}/{base} rate from {inverse.date}")
            return Decimal("1") / inverse.rate

        raise RateUnavailableError(base.upper(), quote.upper(), rate_date.isoformat())

    def real_time_rate(self, base: str, quote: str) -> Decimal:
        """
        Get the current exchange rate.

        Uses real_time_source when configured, the latest stored rate otherwise.

        Raises:
            RateUnavailableError: If no rate is available
        """
        if base.upper() == quote.upper():
            return Decimal("1")

        if self.real_time_source is not None:
            rate = self.real_time_source(base.upper(), quote.upper())
            if rate is not None:
                return Decimal(str(rate))

        record = self.get_latest_rate(base, quote)
        if record:
            return record.rate

        inverse = self.get_latest_rate(quote, base)
        if inverse and inverse.rate:
            return Decimal("1") / inverse.rate

        raise RateUnavailableError(base.upper(), quote.upper())
