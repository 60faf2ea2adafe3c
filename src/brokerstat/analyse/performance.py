"""
Portfolio performance analysis.

Calculates the annual rate of return of a broker account net of deposit
and withdrawal timing:
1. Investor deposits/withdrawals are converted to the analysis currency
   at historical rates of their dates
2. Open positions and free cash are valued at current rates
3. A deposit fed with the same cash flows is emulated, and the interest
   rate at which it grows to the current portfolio value is searched for
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional, Tuple

from brokerstat.analyse.deposit_emulator import CashFlowEvent, DepositEmulator
from brokerstat.core.config import Settings
from brokerstat.core.currency import CurrencyConverter
from brokerstat.core.exceptions import InsufficientDataError
from brokerstat.parsers.models import PositionRecord
from brokerstat.parsers.statement import Statement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceResult:
    """Result of portfolio performance analysis."""
    currency: str
    total_deposits: Decimal  # Gross, withdrawals aren't subtracted
    current_assets: Decimal
    annual_rate: float  # Percent

    @property
    def profit(self) -> Decimal:
        return self.current_assets - self.total_deposits

    def __str__(self) -> str:
        return format_performance(self)


class QuoteProvider(ABC):
    """Current instrument prices."""

    @abstractmethod
    def get_price(self, position: PositionRecord) -> Optional[Decimal]:
        """Get current price in position currency (None if unknown)."""


def find_rate(
    func: Callable[[float], float],
    target: float,
    lower: float,
    upper: float,
    tolerance: float,
    max_iterations: int,
) -> float:
    """
    Find rate at which monotonic func reaches target using bisection.

    Args:
        func: Non-decreasing function of rate
        target: Value to reach
        lower: Lower rate bound
        upper: Upper rate bound
        tolerance: Absolute tolerance on func value
        max_iterations: Iteration cap

    Returns:
        Rate, or 0 if func doesn't depend on rate and already equals target

    Raises:
        InsufficientDataError: If target isn't reachable within the bounds
    """
    if lower >= upper:
        raise ValueError(f"Invalid rate bounds: {lower} - {upper}")

    low_value = func(lower) - target
    high_value = func(upper) - target

    # No elapsed time or no cash flows
    if abs(high_value - low_value) <= tolerance:
        if abs(low_value) <= tolerance:
            return 0.0
        raise InsufficientDataError(
            "Unable to calculate performance: portfolio value doesn't depend on the interest rate")

    if abs(low_value) <= tolerance:
        return lower
    if abs(high_value) <= tolerance:
        return upper

    if (low_value < 0) == (high_value < 0):
        raise InsufficientDataError(
            f"Unable to calculate performance: the rate is out of "
            f"[{lower * 100:.0f}%, {upper * 100:.0f}%] range")

    for _ in range(max_iterations):
        middle = (lower + upper) / 2
        value = func(middle) - target

        if abs(value) <= tolerance:
            return middle

        if (value < 0) == (low_value < 0):
            lower, low_value = middle, value
        else:
            upper = middle

    return (lower + upper) / 2


class PortfolioPerformanceAnalyser:
    """
    Calculates real annual rate of return of a broker statement.

    Usage:
        analyser = PortfolioPerformanceAnalyser(converter)
        result = analyser.analyse(statement, "USD")
        print(f"{result.annual_rate:.1f}%")
    """

    def __init__(
        self,
        converter: CurrencyConverter,
        quotes: Optional[QuoteProvider] = None,
        lower_rate: float = -0.99,
        upper_rate: float = 10.0,
        tolerance: float = 1e-6,
        max_iterations: int = 200,
    ):
        """
        Initialize analyser.

        Args:
            converter: Currency converter
            quotes: Current price provider (statement closing prices if None)
            lower_rate: Lower annual rate bound (-0.99 = -99%)
            upper_rate: Upper annual rate bound (10.0 = +1000%)
            tolerance: Absolute tolerance on emulated balance
            max_iterations: Root search iteration cap
        """
        self.converter = converter
        self.quotes = quotes
        self.lower_rate = lower_rate
        self.upper_rate = upper_rate
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    @classmethod
    def from_settings(
        cls,
        converter: CurrencyConverter,
        settings: Settings,
        quotes: Optional[QuoteProvider] = None,
    ) -> "PortfolioPerformanceAnalyser":
        analysis = settings.analysis
        return cls(
            converter,
            quotes=quotes,
            lower_rate=analysis.lower_rate,
            upper_rate=analysis.upper_rate,
            tolerance=analysis.tolerance,
            max_iterations=analysis.max_iterations,
        )

    def analyse(self, statement: Statement, currency: str) -> PerformanceResult:
        """
        Analyse portfolio performance in the specified currency.

        Raises:
            RateUnavailableError: If a currency pair can't be priced
            InsufficientDataError: If performance can't be calculated
        """
        currency = currency.upper()

        cash_flows = self._convert_capital_flows(statement, currency)
        events = self._to_events(cash_flows)
        total_deposits = sum((amount for _, amount in cash_flows if amount > 0), Decimal("0"))
        current_assets = self.get_current_assets(statement, currency)

        as_of = statement.period.end
        rate = find_rate(
            lambda trial_rate: DepositEmulator.simulate(events, trial_rate, as_of),
            float(current_assets),
            self.lower_rate, self.upper_rate, self.tolerance, self.max_iterations,
        )

        result = PerformanceResult(
            currency=currency,
            total_deposits=total_deposits,
            current_assets=current_assets,
            annual_rate=rate * 100,
        )

        logger.info(f"{statement.broker} performance: {result}")
        return result

    def get_cash_flow_events(self, statement: Statement, currency: str) -> List[CashFlowEvent]:
        """Convert investor deposits and withdrawals to the analysis currency."""
        return self._to_events(self._convert_capital_flows(statement, currency.upper()))

    @staticmethod
    def _to_events(cash_flows: List[Tuple[date, Decimal]]) -> List[CashFlowEvent]:
        return [CashFlowEvent(date=flow_date, amount=float(amount)) for flow_date, amount in cash_flows]

    def _convert_capital_flows(self, statement: Statement, currency: str) -> List[Tuple[date, Decimal]]:
        converted = []

        for cash_flow in statement.capital_flows:
            rate = self.converter.historical_rate(cash_flow.currency, currency, cash_flow.date)
            converted.append((cash_flow.date, cash_flow.amount * rate))

        return converted

    def get_current_assets(self, statement: Statement, currency: str) -> Decimal:
        """Value open positions and free cash in the analysis currency."""
        total = Decimal("0")

        for position in statement.positions:
            price = self._get_price(position)
            rate = self.converter.real_time_rate(position.currency, currency)
            total += position.quantity * price * rate

        for cash in statement.cash_assets:
            rate = self.converter.real_time_rate(cash.currency, currency)
            total += cash.amount * rate

        return total

    def _get_price(self, position: PositionRecord) -> Decimal:
        price = None

        if self.quotes is not None:
            price = self.quotes.get_price(position)
        if price is None:
            price = position.price
        if price is None:
            raise InsufficientDataError(f"Unable to get current price of {position.instrument_id}")

        return price


def format_performance(result: PerformanceResult, rate_decimal_places: int = 1) -> str:
    """
    Format performance as a one-line summary.

    Example:
        "USD: 1,000 + 100 = 1,100 (10.0%)"
    """
    def round_amount(amount: Decimal) -> int:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    deposits = round_amount(result.total_deposits)
    current_assets = round_amount(result.current_assets)
    profit = current_assets - deposits
    profit_sign = "-" if profit < 0 else "+"

    return (
        f"{result.currency}: {deposits:,} {profit_sign} {abs(profit):,} = {current_assets:,} "
        f"({result.annual_rate:.{rate_decimal_places}f}%)"
    )
