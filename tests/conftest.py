"""
Shared pytest fixtures for brokerstat tests.

Provides database connections, fake currency converters and report builders.
"""

import pytest
import sqlite3
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from openpyxl import Workbook

from brokerstat.core.currency import CurrencyConverter, ensure_rates_table
from brokerstat.core.exceptions import RateUnavailableError
from brokerstat.parsers.scanner import ReportRow


class FakeConverter(CurrencyConverter):
    """In-memory converter recording every rate request."""

    def __init__(self, historical=None, real_time=None):
        self.historical = historical or {}
        self.real_time = real_time or {}
        self.calls = []

    def historical_rate(self, base, quote, rate_date):
        self.calls.append(("historical", base, quote, rate_date))
        if base == quote:
            return Decimal("1")
        try:
            return self.historical[(base, quote, rate_date)]
        except KeyError:
            try:
                return self.historical[(base, quote)]
            except KeyError:
                raise RateUnavailableError(base, quote, rate_date.isoformat())

    def real_time_rate(self, base, quote):
        self.calls.append(("real_time", base, quote))
        if base == quote:
            return Decimal("1")
        try:
            return self.real_time[(base, quote)]
        except KeyError:
            raise RateUnavailableError(base, quote)


@pytest.fixture
def db_connection():
    """Provide an in-memory database with the exchange_rates table."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    ensure_rates_table(conn)
    yield conn
    conn.close()


@pytest.fixture
def identity_converter():
    """Provide a converter knowing only same-currency rates."""
    return FakeConverter()


@pytest.fixture
def fake_converter():
    """Provide a factory of converters with fixed rates."""
    return FakeConverter


@pytest.fixture
def make_rows():
    """Build scanned rows from a list of cell lists (blank rows are dropped)."""
    def build(data):
        rows = []
        for index, cells in enumerate(data):
            cells = tuple(cells)
            while cells and cells[-1] is None:
                cells = cells[:-1]
            if cells:
                rows.append(ReportRow(index=index, cells=cells))
        return rows

    return build


@pytest.fixture
def make_workbook(tmp_path):
    """Write rows into an .xlsx workbook and return its path."""
    def build(data, name="statement.xlsx", sheet_title="Sheet"):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = sheet_title
        for cells in data:
            sheet.append(list(cells))
        path = tmp_path / name
        workbook.save(path)
        return path

    return build


@pytest.fixture
def day0():
    """Reference date for analysis scenarios."""
    return date(2020, 1, 1)
