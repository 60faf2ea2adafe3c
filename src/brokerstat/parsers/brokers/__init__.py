"""
Broker statement readers.

A broker is described by data, not by code: its BrokerInfo plus the ordered
list of sections its reports consist of. Adding a broker means adding a
descriptor module, never a new scanner or control flow.

Usage:
    reader = get_reader("bcs")
    statement = reader.read(Path("statements/bcs"))
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple, Union

from brokerstat.core.exceptions import FormatError
from brokerstat.parsers.scanner import ReportRow, ReportScanner
from brokerstat.parsers.sections import Section, SectionRegistry
from brokerstat.parsers.statement import Statement, StatementAssembler, merge_statements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BrokerInfo:
    """Broker identity."""
    name: str
    brief_name: str


class BrokerStatementReader:
    """
    Reads broker statements described by a section list.

    Usage:
        reader = BrokerStatementReader(
            BrokerInfo("Example Broker", "example"),
            [Section("Period:", parser=PeriodParser(), required=True), ...],
            suffixes=(".xlsx",),
        )
        statement = reader.read(Path("statement.xlsx"))
    """

    def __init__(
        self,
        broker: BrokerInfo,
        sections: Sequence[Section],
        sheet_name: Union[str, int] = 0,
        suffixes: Tuple[str, ...] = (".xls", ".xlsx"),
    ):
        self.broker = broker
        self.registry = SectionRegistry(sections)
        self.scanner = ReportScanner(sheet_name=sheet_name)
        self.suffixes = tuple(suffix.lower() for suffix in suffixes)

    def is_statement(self, path: Path) -> bool:
        """Check if the file looks like a statement of this broker."""
        path = Path(path)
        return path.is_file() and path.suffix.lower() in self.suffixes and not path.name.startswith("~$")

    def read(self, path: Path) -> Statement:
        """
        Read a statement file or a directory of consecutive statements.

        Raises:
            FormatError: If the document can't be read
            MissingSectionError: If a required section wasn't found
            ParseError: If a section can't be parsed
            StatementError: If statements are inconsistent
        """
        path = Path(path)

        if path.is_dir():
            files = sorted(file_path for file_path in path.iterdir() if self.is_statement(file_path))
            if not files:
                raise FormatError(str(path), f"no {self.broker.name} statements found")

            logger.info(f"Reading {len(files)} {self.broker.name} statements from {path}")
            return merge_statements([self.read_file(file_path) for file_path in files])

        return self.read_file(path)

    def read_file(self, file_path: Path) -> Statement:
        """Read a single statement file."""
        logger.info(f"Reading {self.broker.name} statement: {Path(file_path).name}")

        return self.read_rows(self.scanner.scan(file_path))

    def read_rows(self, rows: Sequence[ReportRow]) -> Statement:
        """Build a statement from already scanned rows."""
        assembler = StatementAssembler(self.broker.name)

        for _section, records in self.registry.parse(rows):
            assembler.add(records)

        return assembler.build()


def _bcs_reader() -> BrokerStatementReader:
    from brokerstat.parsers.brokers.bcs import create_reader
    return create_reader()


BROKERS: Dict[str, Callable[[], BrokerStatementReader]] = {
    "bcs": _bcs_reader,
}


def get_reader(broker: str) -> BrokerStatementReader:
    """
    Get statement reader by broker brief name.

    Raises:
        ValueError: If the broker isn't supported
    """
    try:
        factory = BROKERS[broker.lower()]
    except KeyError:
        raise ValueError(f"Unsupported broker: {broker}. Supported: {', '.join(supported_brokers())}")
    return factory()


def supported_brokers() -> List[str]:
    return sorted(BROKERS)


__all__ = [
    "BrokerInfo",
    "BrokerStatementReader",
    "get_reader",
    "supported_brokers",
]
