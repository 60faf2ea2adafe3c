"""Tests for report scanner."""

import pytest
from pathlib import Path

import pandas as pd

from brokerstat.core.exceptions import FormatError
from brokerstat.parsers.scanner import ReportRow, ReportScanner


class TestReportScanner:
    """Tests for reading documents."""

    def test_scan_xlsx(self, make_workbook):
        """Test rows are read in document order."""
        path = make_workbook([
            ["Broker report"],
            ["Period:", "01.01.2020 - 31.12.2020"],
            ["Cash", None, 100.5],
        ])

        rows = ReportScanner().scan(path)

        assert [row.first_text for row in rows] == ["Broker report", "Period:", "Cash"]
        assert rows[2].cells == ("Cash", None, 100.5)

    def test_scan_drops_blank_rows_keeping_index(self, make_workbook):
        """Test blank rows are dropped but row numbers are preserved."""
        path = make_workbook([
            ["First"],
            ["   "],
            ["Third"],
        ])

        rows = ReportScanner().scan(path)

        assert len(rows) == 2
        assert rows[0].index == 0
        assert rows[1].index == 2

    def test_scan_named_sheet(self, make_workbook):
        """Test reading a sheet by name."""
        path = make_workbook([["Value"]], sheet_title="TDSheet")

        rows = ReportScanner(sheet_name="TDSheet").scan(path)
        assert rows[0].first_text == "Value"

    def test_scan_missing_sheet(self, make_workbook):
        """Test missing sheet is a format error."""
        path = make_workbook([["Value"]], sheet_title="Other")

        with pytest.raises(FormatError):
            ReportScanner(sheet_name="TDSheet").scan(path)

    def test_scan_csv(self, tmp_path):
        """Test reading CSV documents."""
        path = tmp_path / "statement.csv"
        path.write_text("Period:,01.01.2020\nDeposit,100\n", encoding="utf-8")

        rows = ReportScanner().scan(path)

        assert rows[0].texts == ["Period:", "01.01.2020"]
        assert rows[1].text(1) == "100"

    def test_scan_csv_rows_of_different_width(self, tmp_path):
        """Test a title row followed by a wider table is read in full."""
        path = tmp_path / "statement.csv"
        path.write_text(
            "Period:,01.01.2020 - 31.12.2020\n"
            "\n"
            "Date,Operation,Credit,Debit,Currency\n"
            "15.01.2020,Deposit,100,,USD\n",
            encoding="utf-8",
        )

        rows = ReportScanner().scan(path)

        assert [row.index for row in rows] == [0, 2, 3]
        assert rows[1].texts == ["Date", "Operation", "Credit", "Debit", "Currency"]
        assert rows[2].cells == ("15.01.2020", "Deposit", "100", None, "USD")

    def test_scan_nonexistent_file(self):
        """Test missing file is a format error."""
        with pytest.raises(FormatError) as exc_info:
            ReportScanner().scan(Path("/nonexistent/statement.xlsx"))

        assert "not found" in str(exc_info.value)
        assert exc_info.value.code == "FORMAT_ERROR"

    def test_scan_unsupported_format(self, tmp_path):
        """Test unsupported extension is a format error."""
        path = tmp_path / "statement.pdf"
        path.write_bytes(b"%PDF-1.4")

        with pytest.raises(FormatError) as exc_info:
            ReportScanner().scan(path)

        assert "unsupported format" in str(exc_info.value)

    def test_scan_corrupted_file(self, tmp_path):
        """Test undecodable document is a format error."""
        path = tmp_path / "statement.xlsx"
        path.write_bytes(b"not a zip archive")

        with pytest.raises(FormatError) as exc_info:
            ReportScanner().scan(path)

        assert exc_info.value.__cause__ is not None


class TestScanFrame:
    """Tests for cell normalization."""

    def test_normalize_cells(self):
        """Test NaN and blank strings become None, text is stripped."""
        df = pd.DataFrame([["  Title  ", float("nan"), "", 5, None]], dtype=object)

        rows = ReportScanner().scan_frame(df)

        assert rows == [ReportRow(index=0, cells=("Title", None, None, 5))]

    def test_trailing_empty_cells_are_trimmed(self):
        """Test trailing empty cells are removed."""
        df = pd.DataFrame([["A", None, None], [None, None, None]], dtype=object)

        rows = ReportScanner().scan_frame(df)

        assert len(rows) == 1
        assert rows[0].cells == ("A",)


class TestReportRow:
    """Tests for row accessors."""

    def test_first_text_skips_empty_cells(self):
        row = ReportRow(index=0, cells=(None, "Assets", 10))
        assert row.first_text == "Assets"

    def test_cell_out_of_range(self):
        row = ReportRow(index=0, cells=("A",))
        assert row.cell(5) is None
        assert row.text(5) == ""
