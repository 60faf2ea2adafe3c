"""
Portfolio performance analysis.

Usage:
    from brokerstat.analyse import analyse_currencies, format_results

    settings = Settings.load(config_dir)
    results = analyse_currencies(statement, converter, settings=settings)
    for line in format_results(results, settings):
        print(line)
"""

import logging
from typing import List, Optional, Sequence

from brokerstat.analyse.deposit_emulator import DAYS_IN_YEAR, CashFlowEvent, DepositEmulator
from brokerstat.analyse.performance import (
    PerformanceResult,
    PortfolioPerformanceAnalyser,
    QuoteProvider,
    find_rate,
    format_performance,
)
from brokerstat.core.config import Settings
from brokerstat.core.currency import CurrencyConverter
from brokerstat.parsers.statement import Statement

logger = logging.getLogger(__name__)


def analyse_currencies(
    statement: Statement,
    converter: CurrencyConverter,
    currencies: Optional[Sequence[str]] = None,
    quotes: Optional[QuoteProvider] = None,
    settings: Optional[Settings] = None,
) -> List[PerformanceResult]:
    """
    Analyse statement performance in each of the currencies.

    Args:
        statement: Broker statement
        converter: Currency converter
        currencies: Analysis currencies (settings.analysis.currencies if None)
        quotes: Current price provider (optional)
        settings: Settings for the rate search (defaults if None)

    Returns:
        PerformanceResult per currency, in the same order
    """
    settings = settings or Settings()
    if currencies is None:
        currencies = settings.analysis.currencies

    analyser = PortfolioPerformanceAnalyser.from_settings(converter, settings, quotes)

    logger.info(f"Analysing {statement.broker} portfolio performance ({statement.period})")
    return [analyser.analyse(statement, currency) for currency in currencies]


def format_results(results: Sequence[PerformanceResult], settings: Optional[Settings] = None) -> List[str]:
    """Format results as summary lines using display settings."""
    settings = settings or Settings()
    return [format_performance(result, settings.display.rate_decimal_places) for result in results]


__all__ = [
    "DAYS_IN_YEAR",
    "CashFlowEvent",
    "DepositEmulator",
    "PerformanceResult",
    "PortfolioPerformanceAnalyser",
    "QuoteProvider",
    "find_rate",
    "format_performance",
    "analyse_currencies",
    "format_results",
]
