"""
Type-driven converter lookup.
"""

import logging
import types
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union, get_args, get_origin

from csv_record_mapper.converters.base import (
    BooleanConverter,
    EnumConverter,
    StringConverter,
    TypeConverter,
)
from csv_record_mapper.converters.numeric import DecimalConverter, FloatConverter, IntConverter
from csv_record_mapper.converters.temporal import DateConverter, DateTimeConverter, TimeConverter

logger = logging.getLogger(__name__)

_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)


def unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    """Split ``Optional[X]`` into ``(X, True)``; other types return ``(tp, False)``."""
    if get_origin(tp) in _UNION_TYPES:
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1 and len(args) < len(get_args(tp)):
            return args[0], True
    return tp, False


def _builtin_converters() -> Dict[Any, TypeConverter]:
    return {
        str: StringConverter(),
        int: IntConverter(),
        float: FloatConverter(),
        Decimal: DecimalConverter(),
        bool: BooleanConverter(),
        datetime: DateTimeConverter(),
        date: DateConverter(),
        time: TimeConverter(),
    }


class TypeConverterRegistry:
    """Maps destination types to converters.

    Resolution never fails: exact match, then Enum types, then the nearest
    registered base class, then the string identity converter.
    """

    def __init__(self, converters: Optional[Dict[Any, TypeConverter]] = None):
        self._converters: Dict[Any, TypeConverter] = (
            dict(converters) if converters is not None else _builtin_converters()
        )

    def register(self, target_type: Any, converter: TypeConverter) -> None:
        """Register (or replace) the converter used for ``target_type``."""
        if not isinstance(converter, TypeConverter):
            raise TypeError(f"Expected a TypeConverter, got {type(converter).__name__}")
        self._converters[target_type] = converter

    def remove(self, target_type: Any) -> None:
        self._converters.pop(target_type, None)

    def resolve(self, target_type: Any) -> TypeConverter:
        target_type, _ = unwrap_optional(target_type)

        converter = self._converters.get(target_type)
        if converter is not None:
            return converter

        if isinstance(target_type, type):
            if issubclass(target_type, Enum):
                return EnumConverter(target_type)
            for base in target_type.__mro__[1:]:
                converter = self._converters.get(base)
                if converter is not None:
                    return converter

        logger.debug(f"No converter registered for {target_type!r}, using string converter")
        return StringConverter()

    def copy(self) -> "TypeConverterRegistry":
        return TypeConverterRegistry(self._converters)

    def __contains__(self, target_type: Any) -> bool:
        return target_type in self._converters


default_registry = TypeConverterRegistry()
