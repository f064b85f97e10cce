"""
Exception hierarchy for the CSV record mapper.

Tokenization and binding errors are record-scoped: the reader cursor stays
valid after one is raised, so callers may skip the record and continue.
Configuration errors are raised once, when a mapping table is built.
"""

from typing import Any, List, Optional


class CsvMapperError(Exception):
    """Base class for all errors raised by this package."""
    pass


class TokenizationError(CsvMapperError):
    """Raised when the input text cannot be split into fields (unterminated quote)."""

    def __init__(self, message: str, record_number: Optional[int] = None,
                 line_number: Optional[int] = None):
        location = []
        if record_number is not None:
            location.append(f"record {record_number}")
        if line_number is not None:
            location.append(f"line {line_number}")
        suffix = f" ({', '.join(location)})" if location else ""
        super().__init__(f"{message}{suffix}")
        self.record_number = record_number
        self.line_number = line_number


class ConfigurationError(CsvMapperError):
    """Raised when a mapping declaration is structurally invalid."""
    pass


class FieldLookupError(CsvMapperError, LookupError):
    """Raised when a selector cannot be resolved against a record."""

    def __init__(self, member: str, selector: Any, record_number: Optional[int] = None,
                 reason: str = "field not found"):
        super().__init__(f"Member '{member}': {reason} for {selector}")
        self.member = member
        self.selector = selector
        self.record_number = record_number
        self.reason = reason


class ConversionError(CsvMapperError, ValueError):
    """Raised when a raw string cannot be converted to the target type."""

    def __init__(self, raw_value: Optional[str], target_type: Any,
                 field_index: Optional[int] = None, member: Optional[str] = None,
                 reason: Optional[str] = None):
        type_name = getattr(target_type, "__name__", str(target_type))
        parts = [f"Cannot convert {raw_value!r} to {type_name}"]
        if member is not None:
            parts.append(f"member '{member}'")
        if field_index is not None:
            parts.append(f"field {field_index}")
        message = ", ".join(parts)
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.raw_value = raw_value
        self.target_type = target_type
        self.field_index = field_index
        self.member = member
        self.reason = reason

    def with_context(self, field_index: Optional[int], member: Optional[str]) -> "ConversionError":
        """Return a copy carrying the field position and member name."""
        return ConversionError(self.raw_value, self.target_type, field_index, member, self.reason)


class RecordBindingError(CsvMapperError):
    """Aggregates unrecovered lookup and conversion errors for one record."""

    def __init__(self, errors: List[Exception], record_number: Optional[int] = None,
                 raw_record: Optional[List[str]] = None):
        where = f"Record {record_number}" if record_number is not None else "Record"
        details = "; ".join(str(e) for e in errors)
        super().__init__(f"{where} could not be bound ({len(errors)} error(s)): {details}")
        self.errors = errors
        self.record_number = record_number
        self.raw_record = raw_record
