"""
Converter base class and the non-numeric, non-temporal converters.
"""

import logging
from enum import Enum
from typing import Any, Callable, Optional, Type

from csv_record_mapper.config_models import TypeConverterOptions
from csv_record_mapper.exceptions import ConversionError

logger = logging.getLogger(__name__)


class TypeConverter:
    """Bidirectional string <-> value conversion for one target type.

    Subclasses implement ``parse``; ``format`` defaults to ``str``.
    Failures are reported as ``ConversionError``.
    """

    target_type: Any = object

    def parse(self, text: str, options: TypeConverterOptions) -> Any:
        raise NotImplementedError

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if value is None:
            return ""
        if options.format:
            try:
                return format(value, options.format)
            except (ValueError, TypeError):
                logger.debug(f"Format '{options.format}' not applicable to {value!r}, using str()")
        return str(value)

    def fail(self, text: Optional[str], reason: Optional[str] = None) -> ConversionError:
        return ConversionError(text, self.target_type, reason=reason)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class StringConverter(TypeConverter):
    """Identity converter; the fallback for types nobody registered."""

    target_type = str

    def parse(self, text: str, options: TypeConverterOptions) -> str:
        return text

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        return "" if value is None else str(value)


class BooleanConverter(TypeConverter):
    """Parses the configured true/false tokens, case-insensitively."""

    target_type = bool

    def parse(self, text: str, options: TypeConverterOptions) -> bool:
        token = text.strip().lower()
        if token in (v.lower() for v in options.boolean_true_values):
            return True
        if token in (v.lower() for v in options.boolean_false_values):
            return False
        raise self.fail(text, "not a recognized boolean token")

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if value is None:
            return ""
        tokens = options.boolean_true_values if value else options.boolean_false_values
        return tokens[0] if tokens else str(bool(value)).lower()


class EnumConverter(TypeConverter):
    """Converts by member name (case-insensitive), then by member value."""

    def __init__(self, enum_type: Type[Enum]):
        self.target_type = enum_type
        self._by_lower_name = {name.lower(): member for name, member in enum_type.__members__.items()}

    def parse(self, text: str, options: TypeConverterOptions) -> Enum:
        key = text.strip()
        member = self.target_type.__members__.get(key) or self._by_lower_name.get(key.lower())
        if member is not None:
            return member
        for candidate in self.target_type:
            if str(candidate.value) == key:
                return candidate
        raise self.fail(text, f"not a member of {self.target_type.__name__}")

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if value is None:
            return ""
        if isinstance(value, Enum):
            return value.name
        return str(value)

    def __repr__(self) -> str:
        return f"EnumConverter({self.target_type.__name__})"


class FunctionConverter(TypeConverter):
    """Wraps plain callables as a converter.

    Args:
        parse_func: Called with the raw string, returns the value
        format_func: Called with the value, returns a string (default ``str``)
        target_type: Reported in conversion errors
    """

    def __init__(self, parse_func: Callable[[str], Any],
                 format_func: Optional[Callable[[Any], str]] = None,
                 target_type: Any = object):
        self.parse_func = parse_func
        self.format_func = format_func
        self.target_type = target_type

    def parse(self, text: str, options: TypeConverterOptions) -> Any:
        try:
            return self.parse_func(text)
        except ConversionError:
            raise
        except (ValueError, TypeError, ArithmeticError, LookupError) as e:
            raise self.fail(text, str(e)) from e

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if self.format_func is None:
            return super().format(value, options)
        return self.format_func(value)

    def __repr__(self) -> str:
        name = getattr(self.parse_func, "__name__", repr(self.parse_func))
        return f"FunctionConverter({name})"
