"""
CSV record mapper package.
"""

__version__ = "1.0.0"

from csv_record_mapper.binder import RecordBinder, bind_record
from csv_record_mapper.config_models import (
    CsvConfiguration,
    CultureInfo,
    DateTimeStyles,
    MappingConfig,
    NumberStyles,
    TypeConverterOptions,
)
from csv_record_mapper.converters import TypeConverter, TypeConverterRegistry, default_registry
from csv_record_mapper.csv_reader import CsvReader
from csv_record_mapper.csv_writer import CsvWriter
from csv_record_mapper.exceptions import (
    ConfigurationError,
    ConversionError,
    CsvMapperError,
    FieldLookupError,
    RecordBindingError,
    TokenizationError,
)
from csv_record_mapper.mapping import ClassMap, MappingTable, MemberBinding
from csv_record_mapper.models import ByIndex, ByIndexRange, ByName, ReadStats
from csv_record_mapper.tokenizer import CsvTokenizer, format_record, tokenize

__all__ = [
    "CsvConfiguration",
    "CultureInfo",
    "DateTimeStyles",
    "NumberStyles",
    "TypeConverterOptions",
    "MappingConfig",
    "CsvTokenizer",
    "tokenize",
    "format_record",
    "TypeConverter",
    "TypeConverterRegistry",
    "default_registry",
    "ClassMap",
    "MappingTable",
    "MemberBinding",
    "ByIndex",
    "ByIndexRange",
    "ByName",
    "RecordBinder",
    "bind_record",
    "CsvReader",
    "CsvWriter",
    "ReadStats",
    "CsvMapperError",
    "TokenizationError",
    "ConfigurationError",
    "FieldLookupError",
    "ConversionError",
    "RecordBindingError",
]
