"""Broker statement data models."""

from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import Optional


class CashFlowType(Enum):
    """Type of cash flow on the broker account."""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    FEE = "FEE"
    TAX_WITHHELD = "TAX_WITHHELD"
    INTEREST = "INTEREST"
    DIVIDEND = "DIVIDEND"


# Investor-initiated capital movements. Everything else is part of the return.
CAPITAL_FLOW_TYPES = frozenset({CashFlowType.DEPOSIT, CashFlowType.WITHDRAWAL})


@dataclass(frozen=True)
class StatementPeriod:
    """Statement period, both ends inclusive."""

    start: date_type
    end: date_type

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Invalid statement period: {self.start} - {self.end}")

    def contains(self, day: date_type) -> bool:
        """Check if the date lies within the period."""
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


@dataclass(frozen=True)
class CashFlowRecord:
    """
    Cash movement on the broker account.

    Amount is signed: positive means money credited to the account
    (deposits, dividends, interest), negative means money debited
    (withdrawals, fees, withheld taxes).
    """

    date: date_type
    amount: Decimal
    currency: str
    kind: CashFlowType
    description: str = ""

    @property
    def is_capital_flow(self) -> bool:
        """Check if this is an investor deposit or withdrawal."""
        return self.kind in CAPITAL_FLOW_TYPES


@dataclass(frozen=True)
class TradeRecord:
    """
    Instrument trade.

    Quantity is signed: positive for buys, negative for sells.
    """

    date: date_type
    instrument_id: str
    quantity: Decimal
    price: Decimal
    currency: str
    commission: Decimal = Decimal("0")

    @property
    def is_buy(self) -> bool:
        return self.quantity > 0

    @property
    def volume(self) -> Decimal:
        """Trade volume without commission."""
        return abs(self.quantity) * self.price


@dataclass(frozen=True)
class PositionRecord:
    """Open position at the end of the statement period."""

    instrument_id: str
    quantity: Decimal
    currency: str
    price: Optional[Decimal] = None  # Closing quote if the statement has one


@dataclass(frozen=True)
class CashBalance:
    """Free cash at the end of the statement period."""

    currency: str
    amount: Decimal
