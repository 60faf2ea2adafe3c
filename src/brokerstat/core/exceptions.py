"""
Custom exceptions for brokerstat.

All brokerstat-specific exceptions inherit from BrokerStatError for easy catching.

Exception hierarchy:
    BrokerStatError (base)
    ├── StatementError
    │   ├── FormatError
    │   ├── MissingSectionError
    │   └── ParseError
    ├── OrderingError
    ├── RateUnavailableError
    └── InsufficientDataError
"""

from typing import List, Optional


class BrokerStatError(Exception):
    """Base exception for all brokerstat errors."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ============================================================================
# Statement Errors
# ============================================================================

class StatementError(BrokerStatError):
    """
    Broker statement can't be turned into a Statement.

    Raised for inconsistencies found while assembling or merging
    statements. Parse-time subclasses below are always fatal for the
    document being read.
    """

    def __init__(self, message: str, code: str = "STATEMENT_ERROR", details: dict = None):
        super().__init__(message, code, details)


class FormatError(StatementError):
    """Raised when the source document can't be read or decoded."""

    def __init__(self, path: str, reason: str, code: str = "FORMAT_ERROR"):
        super().__init__(
            f"Unable to read {path}: {reason}",
            code,
            details={"file": path},
        )
        self.path = path
        self.reason = reason


class MissingSectionError(StatementError):
    """Raised when one or more required sections weren't found."""

    def __init__(self, sections: List[str], code: str = "MISSING_SECTION"):
        names = ", ".join(f"'{name}'" for name in sections)
        super().__init__(f"Missing required section(s): {names}", code)
        self.sections = list(sections)


class ParseError(StatementError):
    """Raised when a section row or cell can't be converted."""

    def __init__(
        self,
        message: str,
        section: Optional[str] = None,
        row: Optional[int] = None,
        code: str = "PARSE_ERROR"
    ):
        details = {}
        if section is not None:
            details["section"] = section
        if row is not None:
            details["row"] = row

        super().__init__(message, code, details)
        self.section = section
        self.row = row


# ============================================================================
# Analysis Errors
# ============================================================================

class OrderingError(BrokerStatError):
    """Raised when a date-ascending input precondition is violated."""

    def __init__(self, message: str, code: str = "ORDERING_ERROR"):
        super().__init__(message, code)


class RateUnavailableError(BrokerStatError):
    """Raised when a currency pair can't be priced for the requested date."""

    def __init__(
        self,
        base: str,
        quote: str,
        rate_date: Optional[str] = None,
        code: str = "RATE_UNAVAILABLE"
    ):
        when = f" on {rate_date}" if rate_date else ""
        super().__init__(f"Exchange rate not found for {base}/{quote}{when}", code)
        self.base = base
        self.quote = quote
        self.date = rate_date


class InsufficientDataError(BrokerStatError):
    """Raised when there isn't enough data to calculate portfolio performance."""

    def __init__(self, message: str, code: str = "INSUFFICIENT_DATA"):
        super().__init__(message, code)
