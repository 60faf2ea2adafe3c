"""
Generic section parsers.

The set of parser kinds is closed: period, cash flow ledger, trade ledger,
asset (position) ledger and closing cash balance. Brokers differ only in
how these parsers are configured: column titles, operation keywords and
totals markers.

Cell conversion is strict. A cell that can't be converted raises ParseError
pointing at the section and row instead of being coerced to a default.
"""

import logging
import re
from abc import abstractmethod
from datetime import date as date_type, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import pandas as pd

from brokerstat.parsers.models import (
    CashBalance,
    CashFlowRecord,
    CashFlowType,
    PositionRecord,
    StatementPeriod,
    TradeRecord,
)
from brokerstat.parsers.scanner import ReportRow
from brokerstat.parsers.sections import Block, SectionParser

logger = logging.getLogger(__name__)


DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d", "%d.%m.%y", "%d/%m/%Y")

DATE_PATTERN = re.compile(r"\b(\d{2}\.\d{2}\.\d{4}|\d{4}-\d{2}-\d{2})\b")

CURRENCY_ALIASES = {
    "РУБЛЬ": "RUB",
    "РУБ": "RUB",
    "RUR": "RUB",
    "ДОЛЛАР США": "USD",
    "ЕВРО": "EUR",
}

# Sign applied to unsigned ledger amounts
OUTFLOW_TYPES = frozenset({CashFlowType.WITHDRAWAL, CashFlowType.FEE, CashFlowType.TAX_WITHHELD})


# =============================================================================
# Cell conversion
# =============================================================================

def parse_date(value: Any, block: Block, row: ReportRow) -> date_type:
    """
    Parse date from a cell.

    Args:
        value: Cell value (string, datetime, or pd.Timestamp)
        block: Block being parsed
        row: Row being parsed

    Returns:
        date object

    Raises:
        ParseError: If the cell is empty or isn't a date
    """
    if value is None:
        raise block.error("Date is missing", row)

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date_type):
        return value

    text = str(value).strip()
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).date()
        except ValueError:
            continue

    raise block.error(f"Invalid date: {text!r}", row)


def parse_decimal(value: Any, block: Block, row: ReportRow) -> Decimal:
    """
    Parse decimal number from a cell.

    Accepts comma decimal separator and space thousands separators.

    Raises:
        ParseError: If the cell is empty or isn't a number
    """
    if value is None:
        raise block.error("Number is missing", row)

    if isinstance(value, bool):
        raise block.error(f"Invalid number: {value!r}", row)

    if isinstance(value, (int, float)):
        if pd.isna(value):
            raise block.error("Number is missing", row)
        result = Decimal(str(value))
    else:
        text = str(value).strip()
        for separator in (" ", "\u00a0", "\u2009"):
            text = text.replace(separator, "")
        text = text.replace(",", ".")

        # Decimal() accepts digit group underscores, reports never use them
        if "_" in text:
            raise block.error(f"Invalid number: {value!r}", row)

        try:
            result = Decimal(text)
        except InvalidOperation:
            raise block.error(f"Invalid number: {value!r}", row)

    # NaN and Infinity spelled as text, or infinite floats
    if not result.is_finite():
        raise block.error(f"Invalid number: {value!r}", row)

    return result


def parse_currency(value: Any, block: Block, row: ReportRow) -> str:
    """Parse currency code from a cell, mapping local names to ISO codes."""
    if value is None:
        raise block.error("Currency is missing", row)

    text = str(value).strip().upper()
    text = CURRENCY_ALIASES.get(text, text)

    if not re.fullmatch(r"[A-Z]{3}", text):
        raise block.error(f"Invalid currency: {value!r}", row)
    return text


# =============================================================================
# Period
# =============================================================================

class PeriodParser(SectionParser):
    """
    Parses statement period.

    Expects exactly two dates in the section header row, e.g.
    "Период: | с 01.01.2020 по 31.01.2020".
    """

    def parse(self, block: Block) -> Iterable[StatementPeriod]:
        text = " ".join(block.header.texts)
        dates = DATE_PATTERN.findall(text)

        if len(dates) != 2:
            raise block.error(f"Invalid statement period: {text!r}", block.header)

        start = parse_date(dates[0], block, block.header)
        end = parse_date(dates[1], block, block.header)

        try:
            period = StatementPeriod(start, end)
        except ValueError as e:
            raise block.error(str(e), block.header)

        return [period]


# =============================================================================
# Tables
# =============================================================================

class TableParser(SectionParser):
    """
    Base class for table-shaped sections.

    The column header row is searched within the block (the section header
    row included) by column titles, so column order may differ between
    report versions. Rows following the column header are data rows,
    except rows starting with one of skip_prefixes (totals, subheaders).
    """

    # Fields the subclass can't work without
    REQUIRED_FIELDS: Tuple[str, ...] = ()

    def __init__(
        self,
        columns: Mapping[str, Sequence[str]],
        skip_prefixes: Sequence[str] = (),
        currency: Optional[str] = None,
    ):
        """
        Initialize parser.

        Args:
            columns: Field name -> accepted column titles
            skip_prefixes: First-cell prefixes of non-data rows
            currency: Currency to use when there's no currency column
        """
        missing = [name for name in self.REQUIRED_FIELDS if name not in columns]
        if missing:
            raise ValueError(f"{type(self).__name__} requires columns: {', '.join(missing)}")

        self.columns = {name: tuple(titles) for name, titles in columns.items()}
        self.skip_prefixes = tuple(skip_prefixes)
        self.currency = currency

    def parse(self, block: Block) -> Iterable[Any]:
        rows = (block.header,) + block.rows

        for position, row in enumerate(rows):
            column_map = self._map_columns(row)
            if column_map is not None:
                break
        else:
            raise block.error(f"Unable to find table header in '{block.title}'")

        records = []
        for row in rows[position + 1:]:
            text = row.first_text or ""
            if any(text.startswith(prefix) for prefix in self.skip_prefixes):
                continue

            record = self.parse_row(block, row, _RowReader(block, row, column_map))
            if record is not None:
                records.append(record)

        return records

    @abstractmethod
    def parse_row(self, block: Block, row: ReportRow, cells: "_RowReader") -> Optional[Any]:
        """Convert a data row into a record (None to skip the row)."""

    def _map_columns(self, row: ReportRow) -> Optional[Dict[str, int]]:
        """Map fields to column numbers if the row is the column header."""
        titles = {}
        for column, cell in enumerate(row.cells):
            if cell is not None:
                titles.setdefault(_normalize_title(str(cell)), column)

        column_map = {}
        for name, aliases in self.columns.items():
            for alias in aliases:
                column = titles.get(_normalize_title(alias))
                if column is not None:
                    column_map[name] = column
                    break

        if all(name in column_map for name in self.REQUIRED_FIELDS):
            return column_map
        return None

    def _currency(self, block: Block, row: ReportRow, cells: "_RowReader") -> str:
        if cells.has("currency"):
            return parse_currency(cells.get("currency"), block, row)
        if self.currency:
            return self.currency
        raise block.error("Currency is unknown", row)


class _RowReader:
    """Field access to a data row by column map."""

    def __init__(self, block: Block, row: ReportRow, column_map: Dict[str, int]):
        self.block = block
        self.row = row
        self.column_map = column_map

    def has(self, name: str) -> bool:
        return name in self.column_map

    def get(self, name: str) -> Any:
        column = self.column_map.get(name)
        return None if column is None else self.row.cell(column)

    def text(self, name: str) -> str:
        value = self.get(name)
        return "" if value is None else str(value).strip()

    def date(self, name: str) -> date_type:
        return parse_date(self.get(name), self.block, self.row)

    def decimal(self, name: str, default: Optional[Decimal] = None) -> Decimal:
        value = self.get(name)
        if value is None and default is not None:
            return default
        return parse_decimal(value, self.block, self.row)


def _normalize_title(title: str) -> str:
    return " ".join(title.split()).lower()


class CashFlowParser(TableParser):
    """
    Parses the cash flow ledger.

    Operations are classified by keyword (case-insensitive substring of the
    operation cell). Operations listed in `ignore` are movements reported
    elsewhere (e.g. trade settlements). Any other unknown operation is a
    parse error.

    Amount is taken from an `amount` column with the sign applied by kind,
    or from `credit`/`debit` columns as credit - debit.
    """

    REQUIRED_FIELDS = ("date", "operation")

    def __init__(
        self,
        columns: Mapping[str, Sequence[str]],
        operations: Mapping[str, CashFlowType],
        ignore: Sequence[str] = (),
        skip_prefixes: Sequence[str] = (),
        currency: Optional[str] = None,
    ):
        super().__init__(columns, skip_prefixes, currency)

        if "amount" not in self.columns and not ("credit" in self.columns and "debit" in self.columns):
            raise ValueError("CashFlowParser requires either amount or credit/debit columns")

        self.operations = [(keyword.lower(), kind) for keyword, kind in operations.items()]
        self.ignore = tuple(keyword.lower() for keyword in ignore)

    def parse_row(self, block: Block, row: ReportRow, cells: _RowReader) -> Optional[CashFlowRecord]:
        operation = cells.text("operation")
        if not operation:
            raise block.error("Operation is missing", row)

        lowered = operation.lower()
        if any(keyword in lowered for keyword in self.ignore):
            return None

        kind = self._classify(lowered)
        if kind is None:
            raise block.error(f"Unsupported cash flow operation: {operation!r}", row)

        if cells.has("amount") and cells.get("amount") is not None:
            amount = abs(cells.decimal("amount"))
            if kind in OUTFLOW_TYPES:
                amount = -amount
        else:
            zero = Decimal("0")
            amount = cells.decimal("credit", zero) - cells.decimal("debit", zero)

        if amount == 0:
            raise block.error(f"Zero amount for {operation!r}", row)

        return CashFlowRecord(
            date=cells.date("date"),
            amount=amount,
            currency=self._currency(block, row, cells),
            kind=kind,
            description=operation,
        )

    def _classify(self, operation: str) -> Optional[CashFlowType]:
        for keyword, kind in self.operations:
            if keyword in operation:
                return kind
        return None


class TradesParser(TableParser):
    """
    Parses the trade ledger.

    If a `side` column is configured, quantity sign is taken from it using
    buy_keywords/sell_keywords, otherwise quantity is expected to be signed.
    """

    REQUIRED_FIELDS = ("date", "instrument", "quantity", "price")

    def __init__(
        self,
        columns: Mapping[str, Sequence[str]],
        buy_keywords: Sequence[str] = ("buy",),
        sell_keywords: Sequence[str] = ("sell",),
        skip_prefixes: Sequence[str] = (),
        currency: Optional[str] = None,
    ):
        super().__init__(columns, skip_prefixes, currency)
        self.buy_keywords = tuple(keyword.lower() for keyword in buy_keywords)
        self.sell_keywords = tuple(keyword.lower() for keyword in sell_keywords)

    def parse_row(self, block: Block, row: ReportRow, cells: _RowReader) -> TradeRecord:
        instrument = cells.text("instrument")
        if not instrument:
            raise block.error("Instrument is missing", row)

        quantity = cells.decimal("quantity")
        if quantity == 0:
            raise block.error(f"Zero quantity trade of {instrument}", row)

        if cells.has("side"):
            side = cells.text("side").lower()
            if any(keyword in side for keyword in self.buy_keywords):
                quantity = abs(quantity)
            elif any(keyword in side for keyword in self.sell_keywords):
                quantity = -abs(quantity)
            else:
                raise block.error(f"Unknown trade side: {cells.text('side')!r}", row)

        price = cells.decimal("price")
        if price < 0:
            raise block.error(f"Negative price for {instrument}", row)

        commission = abs(cells.decimal("commission", Decimal("0")))

        return TradeRecord(
            date=cells.date("date"),
            instrument_id=instrument,
            quantity=quantity,
            price=price,
            currency=self._currency(block, row, cells),
            commission=commission,
        )


class AssetsParser(TableParser):
    """
    Parses open positions.

    Rows with zero quantity are positions closed during the period and
    produce no record.
    """

    REQUIRED_FIELDS = ("instrument", "quantity")

    def parse_row(self, block: Block, row: ReportRow, cells: _RowReader) -> Optional[PositionRecord]:
        instrument = cells.text("instrument")
        if not instrument:
            raise block.error("Instrument is missing", row)

        quantity = cells.decimal("quantity")
        if quantity == 0:
            return None
        if quantity < 0:
            raise block.error(f"Short position in {instrument} isn't supported", row)

        price = None
        if cells.has("price") and cells.get("price") is not None:
            price = cells.decimal("price")

        return PositionRecord(
            instrument_id=instrument,
            quantity=quantity,
            currency=self._currency(block, row, cells),
            price=price,
        )


class CashBalanceParser(TableParser):
    """
    Parses free cash balance at the end of the period.

    Reads a currency/amount table, or, when created with inline=True, the
    last cell of the section header row (e.g. "Cash at the end: | 1 500,00").
    """

    REQUIRED_FIELDS = ("amount",)

    def __init__(
        self,
        columns: Optional[Mapping[str, Sequence[str]]] = None,
        skip_prefixes: Sequence[str] = (),
        currency: Optional[str] = None,
        inline: bool = False,
    ):
        if inline and not currency:
            raise ValueError("Inline cash balance requires currency")

        super().__init__(columns or {"amount": ()}, skip_prefixes, currency)
        self.inline = inline

    def parse(self, block: Block) -> Iterable[CashBalance]:
        if not self.inline:
            return super().parse(block)

        header = block.header
        if len(header.texts) < 2:
            raise block.error("Cash balance is missing", header)

        amount = parse_decimal(header.cells[-1], block, header)
        return [CashBalance(currency=self.currency, amount=amount)]

    def parse_row(self, block: Block, row: ReportRow, cells: _RowReader) -> CashBalance:
        return CashBalance(
            currency=self._currency(block, row, cells),
            amount=cells.decimal("amount"),
        )
