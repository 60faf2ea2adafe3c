"""
Report scanner - reads a tabular broker report as an ordered row sequence.

Supports .xls (xlrd), .xlsx (openpyxl) and .csv documents. Blank rows are
dropped, but every row keeps its original index for error reporting.
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import pandas as pd

from brokerstat.core.exceptions import FormatError

logger = logging.getLogger(__name__)


EXCEL_ENGINES = {
    ".xls": "xlrd",
    ".xlsx": "openpyxl",
}


@dataclass(frozen=True)
class ReportRow:
    """
    A non-blank document row.

    Attributes:
        index: 0-based row number in the source document
        cells: Normalized cell values (None for empty cells)
    """
    index: int
    cells: Tuple[Any, ...]

    @property
    def first_text(self) -> Optional[str]:
        """Text of the first non-empty cell."""
        for cell in self.cells:
            if cell is not None:
                return str(cell).strip()
        return None

    @property
    def texts(self) -> List[str]:
        """Text of every non-empty cell, in order."""
        return [str(cell).strip() for cell in self.cells if cell is not None]

    def cell(self, column: int) -> Any:
        """Cell value by column number, None beyond the last cell."""
        if 0 <= column < len(self.cells):
            return self.cells[column]
        return None

    def text(self, column: int) -> str:
        """Cell text by column number, empty string for empty cells."""
        value = self.cell(column)
        return "" if value is None else str(value).strip()


class ReportScanner:
    """
    Scanner for tabular broker reports.

    Usage:
        scanner = ReportScanner(sheet_name="TDSheet")
        for row in scanner.scan(Path("statement.xls")):
            print(row.index, row.first_text)
    """

    SUPPORTED_SUFFIXES = (".xls", ".xlsx", ".csv")

    def __init__(self, sheet_name: Union[str, int] = 0):
        """
        Initialize scanner.

        Args:
            sheet_name: Sheet to read for Excel documents (name or position)
        """
        self.sheet_name = sheet_name

    def scan(self, file_path: Path) -> List[ReportRow]:
        """
        Read document rows.

        Args:
            file_path: Path to the report

        Returns:
            Non-blank rows in document order

        Raises:
            FormatError: If the document can't be read
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FormatError(str(file_path), "file not found")

        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_SUFFIXES:
            raise FormatError(str(file_path), f"unsupported format: {suffix}")

        try:
            if suffix == ".csv":
                df = pd.read_csv(
                    file_path,
                    header=None,
                    names=list(range(self._csv_width(file_path))),
                    skip_blank_lines=False,
                    dtype=object,
                    encoding="utf-8",
                )
            else:
                df = pd.read_excel(
                    file_path,
                    sheet_name=self.sheet_name,
                    header=None,
                    dtype=object,
                    engine=EXCEL_ENGINES[suffix],
                )
        except Exception as e:
            raise FormatError(str(file_path), str(e)) from e

        rows = self.scan_frame(df)
        logger.debug(f"Scanned {file_path.name}: {len(rows)} rows")
        return rows

    def scan_frame(self, df: pd.DataFrame) -> List[ReportRow]:
        """Normalize an already loaded headerless DataFrame."""
        rows = []

        for position, values in enumerate(df.itertuples(index=False, name=None)):
            cells = tuple(self._normalize_cell(value) for value in values)

            # Trailing empty cells carry no information
            while cells and cells[-1] is None:
                cells = cells[:-1]

            if cells:
                rows.append(ReportRow(index=position, cells=cells))

        return rows

    @staticmethod
    def _csv_width(file_path: Path) -> int:
        """Number of fields in the widest line (report rows differ in width)."""
        with open(file_path, encoding="utf-8", newline="") as f:
            return max((len(fields) for fields in csv.reader(f)), default=1)

    @staticmethod
    def _normalize_cell(value: Any) -> Any:
        """Convert NaN and blank strings to None, strip text."""
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            return value or None
        try:
            if pd.isna(value):
                return None
        except (TypeError, ValueError):
            pass
        return value
