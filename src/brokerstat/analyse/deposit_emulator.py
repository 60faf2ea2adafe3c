"""
Deposit emulation.

Emulates a bank deposit which receives and loses money at the same dates
and in the same amounts as the investor's broker account. The interest rate
at which such a deposit ends up with the current portfolio value is the
real annual rate of return of the portfolio.
"""

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from brokerstat.core.exceptions import OrderingError

# Day count convention: actual elapsed days / 365.25
DAYS_IN_YEAR = 365.25


@dataclass(frozen=True)
class CashFlowEvent:
    """Investor deposit (positive amount) or withdrawal (negative amount)."""
    date: date
    amount: float


class DepositEmulator:
    """Reference account compounding at a fixed annual rate."""

    @staticmethod
    def simulate(events: Sequence[CashFlowEvent], rate: float, as_of: date) -> float:
        """
        Calculate the deposit balance.

        Args:
            events: Date-ascending deposits and withdrawals
            rate: Annual interest rate (0.1 = 10%)
            as_of: Date to calculate the balance for

        Returns:
            Balance at as_of. May be negative.

        Raises:
            OrderingError: If events aren't date-ascending or as_of precedes them
            ValueError: If rate is -100% or lower
        """
        if rate <= -1:
            raise ValueError(f"Invalid interest rate: {rate}")

        balance = 0.0
        current_date = None

        for event in events:
            if current_date is not None:
                if event.date < current_date:
                    raise OrderingError(
                        f"Cash flow events must be sorted by date: {event.date} follows {current_date}")
                balance = DepositEmulator._accrue(balance, rate, (event.date - current_date).days)

            balance += event.amount
            current_date = event.date

        if current_date is not None:
            if as_of < current_date:
                raise OrderingError(f"Balance date {as_of} precedes the last cash flow on {current_date}")
            balance = DepositEmulator._accrue(balance, rate, (as_of - current_date).days)

        return balance

    @staticmethod
    def _accrue(balance: float, rate: float, days: int) -> float:
        if days <= 0 or balance == 0:
            return balance
        return balance * (1 + rate) ** (days / DAYS_IN_YEAR)
