"""
Section registry - declarative description of a broker report layout.

A broker report is described by an ordered list of sections. The registry
walks scanned rows once, left to right, splitting them into blocks and
handing every block to its section parser.

Ordering contract:
- Sections are expected in registry order, never out of order.
- A block starts at a row matching its section and ends right before the
  first row matching any later section (or at the end of the document).
- Rows preceding the first row that matches any section are preamble.
- A required section that isn't found where expected is reported at once.
  A later section's title appearing early in the document therefore fails
  loudly instead of silently taking over rows.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from brokerstat.core.exceptions import MissingSectionError, ParseError
from brokerstat.parsers.scanner import ReportRow

logger = logging.getLogger(__name__)


SectionPattern = Union[str, Pattern, Callable[[ReportRow], bool]]


@dataclass(frozen=True)
class Block:
    """
    Document rows matched to a section.

    Attributes:
        section: Name of the matched section
        header: Row that matched the section pattern
        rows: Rows following the header up to the next section
    """
    section: str
    header: ReportRow
    rows: Tuple[ReportRow, ...]

    @property
    def title(self) -> str:
        return self.header.first_text or ""

    def error(self, message: str, row: Optional[ReportRow] = None) -> ParseError:
        """Build a ParseError pointing at this block (and row)."""
        index = row.index if row is not None else self.header.index
        return ParseError(
            f"Error in '{self.section}' section at row {index + 1}: {message}",
            section=self.section,
            row=index,
        )


class SectionParser(ABC):
    """
    Converts a block into normalized records.

    Parsers must not keep state between calls and must raise ParseError
    instead of skipping rows they can't convert.
    """

    @abstractmethod
    def parse(self, block: Block) -> Iterable[Any]:
        """Parse block rows into records."""


class Section:
    """
    Expected report section.

    Usage:
        Section("Period:", parser=PeriodParser(), required=True)
        Section(re.compile(r"^2\\.\\d+\\. Trades"))
        Section("Assets", exact=True, name="assets")
    """

    def __init__(
        self,
        pattern: SectionPattern,
        parser: Optional[SectionParser] = None,
        required: bool = False,
        exact: bool = False,
        name: Optional[str] = None,
    ):
        """
        Initialize section.

        Args:
            pattern: Title prefix, compiled regex or row predicate
            parser: Block parser (None means presence check only)
            required: Whether the report is invalid without the section
            exact: Match the whole title instead of its prefix (str patterns only)
            name: Section name for error messages (defaults to the pattern)
        """
        self.pattern = pattern
        self.parser = parser
        self.required = required
        self.exact = exact

        if name is None:
            if isinstance(pattern, str):
                name = pattern
            elif isinstance(pattern, re.Pattern):
                name = pattern.pattern
            else:
                name = getattr(pattern, "__name__", repr(pattern))
        self.name = name

    def matches(self, row: ReportRow) -> bool:
        """Check if the row starts this section."""
        if callable(self.pattern) and not isinstance(self.pattern, re.Pattern):
            return bool(self.pattern(row))

        text = row.first_text
        if text is None:
            return False

        if isinstance(self.pattern, re.Pattern):
            return self.pattern.search(text) is not None

        if self.exact:
            return text == self.pattern
        return text.startswith(self.pattern)

    def __repr__(self) -> str:
        flag = "required" if self.required else "optional"
        return f"Section({self.name!r}, {flag})"


class SectionRegistry:
    """
    Ordered list of expected report sections.

    Usage:
        registry = SectionRegistry([
            Section("Period:", parser=PeriodParser(), required=True),
            Section("Trades"),
            Section("Assets", parser=AssetsParser(...), required=True),
        ])
        for section, records in registry.parse(rows):
            ...
    """

    def __init__(self, sections: Sequence[Section]):
        self.sections = list(sections)

    def match(self, rows: Sequence[ReportRow]) -> List[Tuple[Section, Block]]:
        """
        Split rows into section blocks.

        Args:
            rows: Scanned document rows

        Returns:
            (section, block) pairs in document order

        Raises:
            MissingSectionError: If a required section wasn't found
        """
        matched = []
        position = 0
        current = self._find_next(rows, 0, 0)

        while current is not None:
            row = rows[current]

            # The row is guaranteed to match some section at or after `position`
            while not self.sections[position].matches(row):
                section = self.sections[position]
                if section.required:
                    raise MissingSectionError([section.name])
                logger.debug(f"Optional section '{section.name}' is absent")
                position += 1

            section = self.sections[position]
            end = self._find_next(rows, current + 1, position + 1)
            body = tuple(rows[current + 1:end if end is not None else len(rows)])

            logger.debug(f"Matched '{section.name}' at row {row.index + 1} ({len(body)} rows)")
            matched.append((section, Block(section=section.name, header=row, rows=body)))

            position += 1
            current = end

        missing = [section.name for section in self.sections[position:] if section.required]
        if missing:
            raise MissingSectionError(missing)

        return matched

    def parse(self, rows: Sequence[ReportRow]) -> List[Tuple[Section, List[Any]]]:
        """
        Match sections and run their parsers in document order.

        Returns:
            (section, records) pairs for sections having a parser

        Raises:
            MissingSectionError: If a required section wasn't found
            ParseError: If a section parser failed
        """
        results = []

        for section, block in self.match(rows):
            if section.parser is None:
                continue

            try:
                records = list(section.parser.parse(block))
            except ParseError as e:
                if e.section is None:
                    raise block.error(e.message) from e
                raise

            logger.debug(f"Section '{section.name}': {len(records)} records")
            results.append((section, records))

        return results

    def _find_next(self, rows: Sequence[ReportRow], first_row: int, first_section: int) -> Optional[int]:
        """Find the first row at or after first_row matching any section from first_section on."""
        candidates = self.sections[first_section:]
        if not candidates:
            return None

        for index in range(first_row, len(rows)):
            if any(section.matches(rows[index]) for section in candidates):
                return index

        return None
