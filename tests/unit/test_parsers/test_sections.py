"""Tests for section registry matching."""

import itertools
import re

import pytest

from brokerstat.core.exceptions import MissingSectionError, ParseError
from brokerstat.parsers.scanner import ReportRow
from brokerstat.parsers.sections import Block, Section, SectionParser, SectionRegistry


class RecordingParser(SectionParser):
    """Parser returning block contents and recording calls."""

    def __init__(self, calls):
        self.calls = calls

    def parse(self, block):
        self.calls.append(block.section)
        return [row.first_text for row in block.rows]


class FailingParser(SectionParser):
    """Parser failing on the first body row."""

    def parse(self, block):
        raise block.error("Invalid value", block.rows[0])


def build_registry(calls):
    return SectionRegistry([
        Section("Period:", parser=RecordingParser(calls), required=True),
        Section("Cash flows", parser=RecordingParser(calls), required=True),
        Section("Trades", parser=RecordingParser(calls)),
        Section("Dividends", parser=RecordingParser(calls)),
        Section("Assets", parser=RecordingParser(calls), required=True),
    ])


DOCUMENT = {
    "Period:": [["Period:", "01.01.2020 - 31.12.2020"]],
    "Cash flows": [["Cash flows"], ["deposit 1"], ["deposit 2"]],
    "Trades": [["Trades"], ["trade 1"]],
    "Dividends": [["Dividends"], ["dividend 1"]],
    "Assets": [["Assets"], ["asset 1"]],
}


def build_document(sections, preamble=True):
    data = [["Broker report for client 42"]] if preamble else []
    for name in sections:
        data.extend(DOCUMENT[name])
    return data


class TestSectionMatching:
    """Tests for section pattern matching."""

    def test_prefix_match(self):
        section = Section("Period:")
        assert section.matches(ReportRow(0, ("Period: 2020",)))
        assert not section.matches(ReportRow(0, ("The period:",)))

    def test_match_uses_first_non_empty_cell(self):
        section = Section("Assets")
        assert section.matches(ReportRow(0, (None, "Assets", "Quantity")))

    def test_exact_match(self):
        section = Section("Pay", exact=True)
        assert section.matches(ReportRow(0, ("Pay",)))
        assert not section.matches(ReportRow(0, ("Payment",)))

    def test_regex_match(self):
        section = Section(re.compile(r"^\d\.\d\. Trades"))
        assert section.name == r"^\d\.\d\. Trades"
        assert section.matches(ReportRow(0, ("2.1. Trades",)))
        assert not section.matches(ReportRow(0, ("Trades",)))

    def test_predicate_match(self):
        def has_total(row):
            return "Total" in row.texts

        section = Section(has_total)
        assert section.name == "has_total"
        assert section.matches(ReportRow(0, ("Cash", "Total")))


class TestSectionRegistry:
    """Tests for the single-pass matching algorithm."""

    def test_all_sections_present(self, make_rows):
        """Test blocks span up to the next section."""
        calls = []
        registry = build_registry(calls)
        rows = make_rows(build_document(DOCUMENT))

        results = registry.parse(rows)

        assert [section.name for section, _ in results] == list(DOCUMENT)
        assert results[1][1] == ["deposit 1", "deposit 2"]
        assert calls == list(DOCUMENT)

    def test_preamble_is_skipped(self, make_rows):
        """Test rows before the first section are ignored."""
        registry = build_registry([])
        blocks = registry.match(make_rows(build_document(DOCUMENT)))

        assert blocks[0][1].header.first_text == "Period:"
        assert blocks[0][1].rows == ()

    def test_last_block_extends_to_end(self, make_rows):
        """Test the last section takes all remaining rows."""
        registry = build_registry([])
        data = build_document(DOCUMENT) + [["asset 2"], ["Trades"]]

        blocks = registry.match(make_rows(data))

        assert [row.first_text for row in blocks[-1][1].rows] == ["asset 1", "asset 2", "Trades"]

    @pytest.mark.parametrize("optional", [
        subset
        for size in range(3)
        for subset in itertools.combinations(["Trades", "Dividends"], size)
    ])
    def test_optional_subsets(self, make_rows, optional):
        """Test any order-preserving subset of optional sections is accepted."""
        present = ["Period:", "Cash flows", *optional, "Assets"]
        calls = []
        registry = build_registry(calls)

        registry.parse(make_rows(build_document(present)))

        assert calls == present

    @pytest.mark.parametrize("missing", ["Period:", "Cash flows", "Assets"])
    def test_missing_required_section(self, make_rows, missing):
        """Test omitting a required section names exactly that section."""
        present = [name for name in DOCUMENT if name != missing]
        registry = build_registry([])

        with pytest.raises(MissingSectionError) as exc_info:
            registry.parse(make_rows(build_document(present)))

        assert exc_info.value.sections == [missing]
        assert exc_info.value.code == "MISSING_SECTION"

    def test_missing_required_sections_at_end(self, make_rows):
        """Test all unmatched required sections are reported at document end."""
        registry = SectionRegistry([
            Section("Period:", required=True),
            Section("Cash flows", required=True),
            Section("Trades"),
            Section("Assets", required=True),
        ])

        with pytest.raises(MissingSectionError) as exc_info:
            registry.match(make_rows(build_document(["Period:"])))

        assert exc_info.value.sections == ["Cash flows", "Assets"]

    def test_no_sections_found(self, make_rows):
        """Test a document without any known section."""
        registry = build_registry([])

        with pytest.raises(MissingSectionError) as exc_info:
            registry.match(make_rows([["Something else"]]))

        assert exc_info.value.sections == ["Period:", "Cash flows", "Assets"]

    def test_sections_out_of_order(self, make_rows):
        """Test a later section appearing first fails on the skipped required one."""
        registry = build_registry([])
        data = build_document(["Period:", "Assets", "Cash flows"])

        with pytest.raises(MissingSectionError) as exc_info:
            registry.match(make_rows(data))

        assert exc_info.value.sections == ["Cash flows"]

    def test_later_title_inside_block_ends_it(self, make_rows):
        """Test a later section's title terminates the current block."""
        registry = SectionRegistry([
            Section("Cash flows", required=True),
            Section("Trades"),
            Section("Assets", required=True),
        ])
        data = [
            ["Cash flows"],
            ["Trades settlement"],
            ["Assets"],
        ]

        blocks = registry.match(make_rows(data))

        assert [section.name for section, _ in blocks] == ["Cash flows", "Trades", "Assets"]
        assert blocks[0][1].rows == ()

    def test_earlier_title_inside_block_is_data(self, make_rows):
        """Test rows matching earlier sections stay in the current block."""
        registry = SectionRegistry([
            Section("Pay", exact=True),
            Section("Assets", required=True),
        ])
        data = [
            ["Assets"],
            ["Pay", "Fund A"],
        ]

        blocks = registry.match(make_rows(data))

        assert len(blocks) == 1
        assert blocks[0][1].rows[0].texts == ["Pay", "Fund A"]

    def test_presence_only_sections(self, make_rows):
        """Test sections without parser produce no results."""
        registry = SectionRegistry([
            Section("Period:", required=True),
            Section("Assets", parser=RecordingParser([]), required=True),
        ])

        results = registry.parse(make_rows(build_document(["Period:", "Assets"])))

        assert [section.name for section, _ in results] == ["Assets"]

    def test_parser_error_is_fatal(self, make_rows):
        """Test parser errors carry section and row and stop parsing."""
        calls = []
        registry = SectionRegistry([
            Section("Period:", parser=RecordingParser(calls), required=True),
            Section("Cash flows", parser=FailingParser(), required=True),
            Section("Assets", parser=RecordingParser(calls), required=True),
        ])
        rows = make_rows(build_document(["Period:", "Cash flows", "Assets"]))

        with pytest.raises(ParseError) as exc_info:
            registry.parse(rows)

        assert exc_info.value.section == "Cash flows"
        assert exc_info.value.row == 3
        assert calls == ["Period:"]

    def test_parser_error_without_context_gets_section(self, make_rows):
        """Test context-less ParseError raised by a parser is attributed to its block."""
        class BareParser(SectionParser):
            def parse(self, block):
                raise ParseError("Broken")

        registry = SectionRegistry([Section("Assets", parser=BareParser(), required=True)])

        with pytest.raises(ParseError) as exc_info:
            registry.parse(make_rows([["Assets"]]))

        assert exc_info.value.section == "Assets"
        assert exc_info.value.row == 0


class TestBlock:
    """Tests for block helpers."""

    def test_error_points_to_row(self):
        block = Block(section="Assets", header=ReportRow(4, ("Assets",)), rows=(ReportRow(6, ("x",)),))

        error = block.error("Bad value", block.rows[0])

        assert error.section == "Assets"
        assert error.row == 6
        assert "row 7" in error.message
