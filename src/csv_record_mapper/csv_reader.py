"""
CSV reader: tokenizer + record binder over one input stream.
"""

import logging
import time
from typing import Any, Iterator, List, Optional, TextIO, Union

from csv_record_mapper.binder import RecordBinder
from csv_record_mapper.config_models import CsvConfiguration, TypeConverterOptions
from csv_record_mapper.converters import TypeConverter, TypeConverterRegistry, default_registry
from csv_record_mapper.exceptions import (
    ConversionError,
    CsvMapperError,
    FieldLookupError,
    RecordBindingError,
    TokenizationError,
)
from csv_record_mapper.mapping import ClassMap, MappingTable, as_mapping_table
from csv_record_mapper.models import ReadStats, RawRecord
from csv_record_mapper.tokenizer import CsvTokenizer

logger = logging.getLogger(__name__)


class CsvReader:
    """Pull-based reader over a text stream.

    Args:
        stream: Text stream supplied by the caller (the reader never opens or closes it)
        configuration: Reader configuration
        registry: Converter registry for ``get_field`` and auto-built mapping tables
    """

    def __init__(self, stream: TextIO, configuration: Optional[CsvConfiguration] = None,
                 registry: Optional[TypeConverterRegistry] = None):
        self.configuration = configuration or CsvConfiguration()
        self.registry = registry or default_registry
        self._tokenizer = CsvTokenizer(stream, self.configuration)
        self.current_record: Optional[RawRecord] = None
        self.header: Optional[List[str]] = None
        self._header_read = False
        self.stats = ReadStats()

    @property
    def record_number(self) -> int:
        """Number of the current logical record (the header counts as record 1)."""
        return self._tokenizer.record_number

    def read_header(self) -> bool:
        """Read the next record as the header.

        Returns:
            False if the stream is empty
        """
        record = self._tokenizer.read_record()
        self._header_read = True
        if record is None:
            return False
        self.header = record
        logger.debug(f"Header: {record}")
        return True

    def read(self) -> bool:
        """Advance to the next data record.

        Returns:
            False at end of stream

        Raises:
            TokenizationError: If the record has an unterminated quoted field
        """
        if self.configuration.has_header_record and not self._header_read:
            if not self.read_header():
                self.current_record = None
                return False
        self.current_record = self._tokenizer.read_record()
        return self.current_record is not None

    def get_field(self, key: Union[int, str], field_type: Any = str,
                  converter: Optional[TypeConverter] = None,
                  options: Optional[TypeConverterOptions] = None) -> Any:
        """Convert one field of the current record.

        Args:
            key: Field index, or header name (first occurrence)
            field_type: Destination type used to resolve a converter
            converter: Converter to use instead of the registry's
            options: Conversion options (default: the configuration's)

        Raises:
            FieldLookupError: If the field does not exist in the current record
            ConversionError: If the text cannot be converted
        """
        if self.current_record is None:
            raise CsvMapperError("No current record; call read() first")

        index = self._field_index(key)
        text = self.current_record[index]
        converter = converter or self.registry.resolve(field_type)
        options = options or self.configuration.type_converter_options
        try:
            return converter.parse(text, options)
        except ConversionError as e:
            raise e.with_context(index, str(key)) from e

    def _field_index(self, key: Union[int, str]) -> int:
        if isinstance(key, int):
            index = key
        elif self.header is None:
            raise FieldLookupError(str(key), f"name '{key}'", self.record_number, reason="no header record")
        elif key in self.header:
            index = self.header.index(key)
        else:
            raise FieldLookupError(key, f"name '{key}'", self.record_number, reason="header name not found")

        if not 0 <= index < len(self.current_record):
            raise FieldLookupError(
                str(key), f"index {index}", self.record_number,
                reason=f"index {index} beyond record length {len(self.current_record)}",
            )
        return index

    def get_records(self, target: Union[MappingTable, ClassMap, type]) -> Iterator[Any]:
        """Bind every remaining record to the target's destination type.

        With ``continue_on_error`` set, records that fail to tokenize or bind
        are logged, counted in ``stats`` and skipped.
        """
        table = as_mapping_table(target, self.registry)
        if self.configuration.has_header_record and not self._header_read:
            self.read_header()
        binder = RecordBinder(table, self.configuration, self.header)
        name = table.destination_type.__name__
        progress_interval = self.configuration.progress_interval

        while True:
            try:
                if not self.read():
                    break
            except TokenizationError as e:
                self.stats.total_records += 1
                self.stats.failed_records += 1
                self._handle_record_error(name, e)
                continue

            self.stats.total_records += 1
            if progress_interval and self.stats.total_records % progress_interval == 0:
                logger.info(f"[{name}] Processed {self.stats.total_records:,} records")

            try:
                record = binder.bind(self.current_record, self.record_number)
            except RecordBindingError as e:
                self.stats.failed_records += 1
                self._handle_record_error(name, e)
                continue

            self.stats.bound_records += 1
            yield record

        self.stats.skipped_records = self._tokenizer.skipped_records
        self.stats.end_time = time.time()

    def _handle_record_error(self, name: str, error: CsvMapperError) -> None:
        """Skip the record under continue_on_error, otherwise re-raise."""
        logger.error(f"Error reading {name} at record {self.record_number}: {error}")
        if not self.configuration.continue_on_error:
            raise error

    def __iter__(self) -> Iterator[RawRecord]:
        """Iterate over raw data records."""
        while self.read():
            yield self.current_record

