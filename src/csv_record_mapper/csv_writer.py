"""
CSV writer: record binder + field quoting over one output sink.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, TextIO, Tuple, Union

from csv_record_mapper.binder import RecordBinder
from csv_record_mapper.config_models import CsvConfiguration, TypeConverterOptions
from csv_record_mapper.converters import TypeConverter, TypeConverterRegistry, default_registry
from csv_record_mapper.mapping import ClassMap, MappingTable, as_mapping_table
from csv_record_mapper.tokenizer import format_record

logger = logging.getLogger(__name__)


class CsvWriter:
    """Writes raw fields or mapped objects to a text sink.

    The sink belongs to the caller; ``close()`` flushes it but does not close it.

    Args:
        sink: Text stream to write to (open files with ``newline=''``)
        configuration: Writer configuration
        flush_every: Flush the sink every N records (0 = flush on close only, None = flush every record)
        registry: Converter registry for ``write_field`` and auto-built mapping tables
    """

    def __init__(self, sink: TextIO, configuration: Optional[CsvConfiguration] = None,
                 flush_every: Optional[int] = 1000, registry: Optional[TypeConverterRegistry] = None):
        self.sink = sink
        self.configuration = configuration or CsvConfiguration()
        self.registry = registry or default_registry
        self.flush_every = flush_every  # None=every record, 0=on close only, N=every N records
        self._pending: List[str] = []
        self._binders: Dict[int, Tuple[Any, RecordBinder]] = {}
        self._header_written = False
        self._record_count = 0
        self._closed = False

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - flushes pending output."""
        self.close()
        return False  # Don't suppress exceptions

    @property
    def record_count(self) -> int:
        """Records written so far, header included."""
        return self._record_count

    def write_field(self, value: Any, converter: Optional[TypeConverter] = None,
                    options: Optional[TypeConverterOptions] = None) -> None:
        """Append one field to the record being built."""
        self._check_open()
        if value is None:
            text = ""
        elif isinstance(value, str) and converter is None:
            text = value
        else:
            converter = converter or self.registry.resolve(type(value))
            text = converter.format(value, options or self.configuration.type_converter_options)
        self._pending.append(text)

    def next_record(self) -> None:
        """Terminate the record being built and write it."""
        self._check_open()
        fields, self._pending = self._pending, []
        self._write_line(fields)

    def write_fields(self, fields: Iterable[Optional[str]]) -> None:
        """Write one raw record."""
        self._check_open()
        if self._pending:
            raise RuntimeError("A record is in progress; call next_record() first")
        self._write_line(list(fields))

    def write_header(self, target: Union[MappingTable, ClassMap, type], instance: Any = None) -> None:
        """Write the header record for a mapping.

        ``instance`` sizes unbounded index ranges.
        """
        binder = self._binder_for(target)
        self.write_fields(binder.header_record(instance))
        self._header_written = True

    def write_record(self, obj: Any, target: Union[MappingTable, ClassMap, type, None] = None) -> None:
        """Write one object, preceded by the header on the first call if configured."""
        binder = self._binder_for(target if target is not None else type(obj))
        if self.configuration.has_header_record and not self._header_written:
            self.write_fields(binder.header_record(obj))
            self._header_written = True
        self.write_fields(binder.unbind(obj))

    def write_records(self, records: Iterable[Any],
                      target: Union[MappingTable, ClassMap, type, None] = None) -> int:
        """Write every object; returns the number of records written."""
        count = 0
        for obj in records:
            self.write_record(obj, target)
            count += 1
        return count

    def flush(self) -> None:
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()

    def close(self) -> None:
        """Flush the sink; further writes raise RuntimeError."""
        if self._closed:
            return
        if self._pending:
            logger.warning(f"Discarding unterminated record with {len(self._pending)} field(s)")
            self._pending = []
        self.flush()
        self._closed = True
        self._binders.clear()

    def _binder_for(self, target: Union[MappingTable, ClassMap, type]) -> RecordBinder:
        cached = self._binders.get(id(target))
        if cached is not None and cached[0] is target:
            return cached[1]
        binder = RecordBinder(as_mapping_table(target, self.registry), self.configuration)
        self._binders[id(target)] = (target, binder)
        return binder

    def _write_line(self, fields: List[Optional[str]]) -> None:
        self.sink.write(format_record(fields, self.configuration) + self.configuration.newline)
        self._record_count += 1

        should_flush = (
            self.flush_every is None or
            (self.flush_every > 0 and self._record_count % self.flush_every == 0)
        )
        if should_flush:
            self.flush()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("CsvWriter is closed")
