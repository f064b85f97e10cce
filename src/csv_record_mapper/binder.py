"""
Record binder: raw field lists <-> destination instances.

A ``RecordBinder`` is one session over a ``MappingTable``. It owns the header
lookup for its stream and the per-member effective converter options, and
never writes to the table, so several sessions can share one table.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from csv_record_mapper.config_models import CsvConfiguration, TypeConverterOptions
from csv_record_mapper.exceptions import ConversionError, FieldLookupError, RecordBindingError
from csv_record_mapper.mapping import MappingTable, MemberBinding
from csv_record_mapper.models import ByIndex, ByIndexRange, ByName, RawRecord

logger = logging.getLogger(__name__)

_MISSING = object()


class RecordBinder:
    """Binds raw records to instances of a mapping table's destination type.

    Args:
        mapping_table: Built mapping shared across sessions
        configuration: Session configuration (converter options, missing-field policy)
        header: Header record of the stream, if it has one
    """

    def __init__(self, mapping_table: MappingTable, configuration: Optional[CsvConfiguration] = None,
                 header: Optional[Sequence[str]] = None):
        self.table = mapping_table
        self.configuration = configuration or CsvConfiguration()
        base = self.configuration.type_converter_options
        self._active: List[Tuple[MemberBinding, TypeConverterOptions]] = [
            (binding, binding.effective_options(base)) for binding in mapping_table.active_bindings
        ]
        self._header: Optional[List[str]] = None
        self._header_index: Optional[Dict[str, List[int]]] = None
        if header is not None:
            self.set_header(header)

    @property
    def header(self) -> Optional[List[str]]:
        return self._header

    def set_header(self, header: Sequence[str]) -> None:
        """Index header names; repeated names keep every position in order."""
        self._header = list(header)
        index: Dict[str, List[int]] = {}
        for position, name in enumerate(self._header):
            index.setdefault(name, []).append(position)
        self._header_index = index

    # Read path

    def bind(self, raw_record: Sequence[str], record_number: Optional[int] = None) -> Any:
        """Create a destination instance from one raw record.

        Raises:
            RecordBindingError: If any member fails lookup or conversion without a default,
                or the destination type rejects the bound values
        """
        values: Dict[str, Any] = {}
        errors: List[Exception] = []
        for binding, options in self._active:
            try:
                value = self._read_member(binding, options, raw_record, record_number)
            except (FieldLookupError, ConversionError) as e:
                errors.append(e)
                continue
            if value is not _MISSING:
                values[binding.member] = value

        if errors:
            raise RecordBindingError(errors, record_number, list(raw_record))
        try:
            return self.table.create(values)
        except (ValidationError, TypeError, ValueError) as e:
            raise RecordBindingError([e], record_number, list(raw_record)) from e

    def resolve_index(self, binding: MemberBinding, raw_record: Sequence[str],
                      record_number: Optional[int] = None) -> int:
        """Field position of a single-field member in this record.

        Raises:
            FieldLookupError: If the name is not in the header or the index is out of bounds
        """
        selector = binding.selector
        if isinstance(selector, ByIndex):
            index = selector.index
        elif isinstance(selector, ByName):
            index = self._lookup_name(binding, selector, record_number)
        else:
            raise TypeError(f"Member '{binding.member}' uses {selector}, not a single field")

        if index >= len(raw_record):
            raise FieldLookupError(
                binding.member, selector, record_number,
                reason=f"index {index} beyond record length {len(raw_record)}",
            )
        return index

    def _lookup_name(self, binding: MemberBinding, selector: ByName, record_number: Optional[int]) -> int:
        if self._header_index is None:
            if selector.fallback_index is None:
                raise FieldLookupError(binding.member, selector, record_number, reason="no header record")
            return selector.fallback_index
        for name in selector.names:
            positions = self._header_index.get(name)
            if positions and selector.name_index < len(positions):
                return positions[selector.name_index]
        raise FieldLookupError(binding.member, selector, record_number, reason="header name not found")

    def _read_member(self, binding: MemberBinding, options: TypeConverterOptions,
                     raw_record: Sequence[str], record_number: Optional[int]) -> Any:
        try:
            if isinstance(binding.selector, ByIndexRange):
                return self._read_range(binding, options, raw_record, record_number)
            index = self.resolve_index(binding, raw_record, record_number)
            return self._convert(binding, options, raw_record[index], index, binding.nullable)
        except FieldLookupError as e:
            if binding.has_default:
                return self._default(binding)
            if not self.configuration.throw_on_missing_field:
                logger.debug(f"{e}; leaving member unset")
                return _MISSING
            raise
        except ConversionError as e:
            if binding.has_default:
                logger.warning(f"{e}; using default {binding.default!r}")
                return self._default(binding)
            raise

    def _read_range(self, binding: MemberBinding, options: TypeConverterOptions,
                    raw_record: Sequence[str], record_number: Optional[int]) -> Any:
        selector: ByIndexRange = binding.selector
        start = selector.start
        # Resolved per call: an unbounded range follows each record's own length
        end = selector.resolve_end(len(raw_record))
        if start <= end and end >= len(raw_record):
            raise FieldLookupError(
                binding.member, selector, record_number,
                reason=f"range end {end} beyond record length {len(raw_record)}",
            )

        count = max(0, end - start + 1)
        if binding.is_array:
            slots: List[Any] = [None] * count
            for slot, index in enumerate(range(start, end + 1)):
                slots[slot] = self._convert(binding, options, raw_record[index], index, binding.element_nullable)
            return binding.container_type(slots)

        container = binding.container_type()
        for index in range(start, end + 1):
            container.append(self._convert(binding, options, raw_record[index], index, binding.element_nullable))
        return container

    def _convert(self, binding: MemberBinding, options: TypeConverterOptions,
                 text: str, index: int, nullable: bool) -> Any:
        if text == "":
            if binding.has_default and not binding.is_range:
                return self._default(binding)
            if nullable:
                return None
        try:
            return binding.converter.parse(text, options)
        except ConversionError as e:
            raise e.with_context(index, binding.member) from e

    @staticmethod
    def _default(binding: MemberBinding) -> Any:
        # Each record gets its own copy of a mutable default
        return copy.deepcopy(binding.default)

    # Write path

    def unbind(self, instance: Any) -> RawRecord:
        """Format an instance's mapped members into a raw record."""
        slots: Dict[int, str] = {}
        for binding, options in self._active:
            value = binding.accessor.get(instance)
            for position, text in self._format_member(binding, options, value):
                slots[position] = text
        if not slots:
            return []
        return [slots.get(i, "") for i in range(max(slots) + 1)]

    def header_record(self, instance: Any = None) -> RawRecord:
        """Header cells laid out like ``unbind`` lays out values.

        An unbounded range needs ``instance`` to know how many cells it spans.
        """
        slots: Dict[int, str] = {}
        for binding, _ in self._active:
            start = self._write_position(binding)
            count = 1
            if binding.is_range:
                count = self._range_width(binding, binding.accessor.get(instance) if instance is not None else None)
            for offset, name in enumerate(binding.header_names(count)):
                slots[start + offset] = name
        if not slots:
            return []
        return [slots.get(i, "") for i in range(max(slots) + 1)]

    def _format_member(self, binding: MemberBinding, options: TypeConverterOptions, value: Any):
        start = self._write_position(binding)
        if not binding.is_range:
            yield start, self._format(binding, options, value)
            return
        items = list(value) if value is not None else []
        width = self._range_width(binding, items)
        items = items[:width] + [None] * (width - len(items))
        for offset, item in enumerate(items):
            yield start + offset, self._format(binding, options, item)

    @staticmethod
    def _range_width(binding: MemberBinding, value: Any) -> int:
        selector: ByIndexRange = binding.selector
        if selector.end is not None:
            return max(0, selector.end - selector.start + 1)
        return len(value) if value is not None else 0

    @staticmethod
    def _write_position(binding: MemberBinding) -> int:
        selector = binding.selector
        if isinstance(selector, ByIndex):
            return selector.index
        if isinstance(selector, ByIndexRange):
            return selector.start
        return selector.fallback_index

    @staticmethod
    def _format(binding: MemberBinding, options: TypeConverterOptions, value: Any) -> str:
        if value is None:
            return ""
        return binding.converter.format(value, options)


def bind_record(raw_record: Sequence[str], mapping_table: MappingTable,
                configuration: Optional[CsvConfiguration] = None,
                header: Optional[Sequence[str]] = None) -> Any:
    """One-off bind of a single record; use a RecordBinder for streams."""
    return RecordBinder(mapping_table, configuration, header).bind(raw_record)
