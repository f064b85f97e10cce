"""
Type converters and the converter registry.
"""

from csv_record_mapper.converters.base import (
    BooleanConverter,
    EnumConverter,
    FunctionConverter,
    StringConverter,
    TypeConverter,
)
from csv_record_mapper.converters.numeric import DecimalConverter, FloatConverter, IntConverter
from csv_record_mapper.converters.registry import TypeConverterRegistry, default_registry, unwrap_optional
from csv_record_mapper.converters.temporal import DateConverter, DateTimeConverter, TimeConverter

__all__ = [
    "TypeConverter",
    "StringConverter",
    "BooleanConverter",
    "EnumConverter",
    "FunctionConverter",
    "IntConverter",
    "FloatConverter",
    "DecimalConverter",
    "DateTimeConverter",
    "DateConverter",
    "TimeConverter",
    "TypeConverterRegistry",
    "default_registry",
    "unwrap_optional",
]
