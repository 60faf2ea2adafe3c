"""Broker statement parsers.

Provides the section-driven parsing engine and the canonical statement
records it produces.
"""

from .models import (
    CashFlowType,
    CashFlowRecord,
    TradeRecord,
    PositionRecord,
    CashBalance,
    StatementPeriod,
)
from .scanner import ReportScanner, ReportRow
from .sections import Section, SectionRegistry, SectionParser, Block
from .handlers import (
    PeriodParser,
    CashFlowParser,
    TradesParser,
    AssetsParser,
    CashBalanceParser,
)
from .statement import Statement, StatementAssembler, merge_statements

__all__ = [
    "CashFlowType",
    "CashFlowRecord",
    "TradeRecord",
    "PositionRecord",
    "CashBalance",
    "StatementPeriod",
    "ReportScanner",
    "ReportRow",
    "Section",
    "SectionRegistry",
    "SectionParser",
    "Block",
    "PeriodParser",
    "CashFlowParser",
    "TradesParser",
    "AssetsParser",
    "CashBalanceParser",
    "Statement",
    "StatementAssembler",
    "merge_statements",
]
