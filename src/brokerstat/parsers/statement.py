"""
Broker statement assembly.

StatementAssembler collects records produced by section parsers and builds
an immutable Statement. A Statement is built only when the whole document
was parsed successfully: there is no way to get a partially filled one.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from brokerstat.core.exceptions import StatementError
from brokerstat.parsers.models import (
    CashBalance,
    CashFlowRecord,
    PositionRecord,
    StatementPeriod,
    TradeRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statement:
    """
    Broker statement.

    Cash flows and trades are sorted by date. Positions and cash assets
    describe the account at the end of the period.
    """

    broker: str
    period: StatementPeriod
    cash_flows: Tuple[CashFlowRecord, ...] = ()
    trades: Tuple[TradeRecord, ...] = ()
    positions: Tuple[PositionRecord, ...] = ()
    cash_assets: Tuple[CashBalance, ...] = ()

    @property
    def capital_flows(self) -> Tuple[CashFlowRecord, ...]:
        """Investor deposits and withdrawals."""
        return tuple(cash_flow for cash_flow in self.cash_flows if cash_flow.is_capital_flow)

    @property
    def currencies(self) -> List[str]:
        """All currencies the statement operates with."""
        currencies = set()
        for records in (self.cash_flows, self.trades, self.positions, self.cash_assets):
            currencies.update(record.currency for record in records)
        return sorted(currencies)


class StatementAssembler:
    """
    Collects section parser output into a Statement.

    Usage:
        assembler = StatementAssembler("BCS")
        for section, records in registry.parse(rows):
            assembler.add(records)
        statement = assembler.build()
    """

    def __init__(self, broker: str):
        self.broker = broker
        self.period: Optional[StatementPeriod] = None
        self.cash_flows: List[CashFlowRecord] = []
        self.trades: List[TradeRecord] = []
        self.positions: Dict[str, PositionRecord] = {}
        self.cash_assets: Dict[str, CashBalance] = {}

    def add(self, records: Iterable[Any]) -> None:
        """Add records of any supported type."""
        for record in records:
            if isinstance(record, CashFlowRecord):
                self.cash_flows.append(record)
            elif isinstance(record, TradeRecord):
                self.trades.append(record)
            elif isinstance(record, PositionRecord):
                self._add_position(record)
            elif isinstance(record, CashBalance):
                self._add_cash(record)
            elif isinstance(record, StatementPeriod):
                self._set_period(record)
            else:
                raise TypeError(f"Unsupported statement record: {record!r}")

    def build(self) -> Statement:
        """
        Build the statement.

        Raises:
            StatementError: If the period is unknown or records lie outside it
        """
        if self.period is None:
            raise StatementError("Unable to find statement period")

        for record in list(self.cash_flows) + list(self.trades):
            if not self.period.contains(record.date):
                raise StatementError(
                    f"{type(record).__name__} dated {record.date} is outside "
                    f"of the statement period ({self.period})"
                )

        statement = Statement(
            broker=self.broker,
            period=self.period,
            cash_flows=tuple(sorted(self.cash_flows, key=lambda record: record.date)),
            trades=tuple(sorted(self.trades, key=lambda record: record.date)),
            positions=tuple(self.positions.values()),
            cash_assets=tuple(self.cash_assets.values()),
        )

        logger.info(
            f"{self.broker} statement {self.period}: {len(statement.cash_flows)} cash flows, "
            f"{len(statement.trades)} trades, {len(statement.positions)} positions"
        )
        return statement

    def _set_period(self, period: StatementPeriod) -> None:
        if self.period is not None:
            raise StatementError(f"Duplicate statement period: {period}")
        self.period = period

    def _add_position(self, position: PositionRecord) -> None:
        if position.instrument_id in self.positions:
            raise StatementError(f"Duplicate open position: {position.instrument_id}")
        self.positions[position.instrument_id] = position

    def _add_cash(self, balance: CashBalance) -> None:
        existing = self.cash_assets.get(balance.currency)
        if existing is not None:
            balance = CashBalance(balance.currency, existing.amount + balance.amount)
        self.cash_assets[balance.currency] = balance


def merge_statements(statements: Sequence[Statement]) -> Statement:
    """
    Merge statements of consecutive periods into one.

    Cash flows and trades are concatenated, positions and cash assets are
    taken from the latest statement.

    Raises:
        StatementError: If brokers differ or periods overlap or have gaps
    """
    if not statements:
        raise StatementError("No statements to merge")

    statements = sorted(statements, key=lambda statement: statement.period.start)
    first, last = statements[0], statements[-1]

    for previous, current in zip(statements, statements[1:]):
        if current.broker != previous.broker:
            raise StatementError(
                f"Unable to merge statements of different brokers: "
                f"{previous.broker} and {current.broker}"
            )

        expected_start = previous.period.end + timedelta(days=1)
        if current.period.start < expected_start:
            raise StatementError(f"Overlapping statement periods: {previous.period} and {current.period}")
        if current.period.start > expected_start:
            raise StatementError(f"Missing statement for {expected_start} - {current.period.start - timedelta(days=1)}")

    cash_flows = []
    trades = []
    for statement in statements:
        cash_flows.extend(statement.cash_flows)
        trades.extend(statement.trades)

    return Statement(
        broker=first.broker,
        period=StatementPeriod(first.period.start, last.period.end),
        cash_flows=tuple(cash_flows),
        trades=tuple(trades),
        positions=last.positions,
        cash_assets=last.cash_assets,
    )
