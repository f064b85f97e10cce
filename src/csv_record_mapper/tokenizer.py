"""
Character-level CSV tokenizer and its writing counterpart.

The tokenizer pulls characters from a text stream and yields one list of
field strings per logical record. Quoting follows RFC 4180: the quote
character opens a quoted field only at the start of a field, and a doubled
quote inside a quoted field stands for one literal quote. Delimiters and
line breaks inside quotes are literal, so one record may span several
physical lines.
"""

import io
import logging
from typing import Iterable, Iterator, List, Optional, TextIO

from csv_record_mapper.config_models import CsvConfiguration
from csv_record_mapper.exceptions import TokenizationError
from csv_record_mapper.models import RawRecord

logger = logging.getLogger(__name__)

# Tokenizer states
_FIELD_START = 0
_UNQUOTED = 1
_QUOTED = 2
_POSSIBLE_END_QUOTE = 3

_WHITESPACE = (" ", "\t")


class CharacterCursor:
    """Forward-only ``next``/``peek`` access to a text stream.

    Args:
        stream: Any object with a ``read(size)`` method returning str
        buffer_size: Number of characters fetched per read
    """

    def __init__(self, stream: TextIO, buffer_size: int = 8192):
        self._stream = stream
        self._buffer_size = buffer_size
        self._buffer = ""
        self._pos = 0
        self._eof = False

    def _fill(self) -> bool:
        if self._eof:
            return False
        chunk = self._stream.read(self._buffer_size)
        if not chunk:
            self._eof = True
            return False
        self._buffer = chunk
        self._pos = 0
        return True

    def next(self) -> str:
        """Consume and return the next character, or '' at end of stream."""
        if self._pos >= len(self._buffer) and not self._fill():
            return ""
        ch = self._buffer[self._pos]
        self._pos += 1
        return ch

    def peek(self) -> str:
        """Return the next character without consuming it, or '' at end of stream."""
        if self._pos >= len(self._buffer) and not self._fill():
            return ""
        return self._buffer[self._pos]


class CsvTokenizer:
    """Lazy, forward-only sequence of raw records read from a text stream.

    Args:
        stream: Text stream to read from (opened with ``newline=''`` for files)
        configuration: Delimiter, quote and blank-line policy
    """

    def __init__(self, stream: TextIO, configuration: Optional[CsvConfiguration] = None):
        self.configuration = configuration or CsvConfiguration()
        self._cursor = CharacterCursor(stream)
        self._delimiter = self.configuration.delimiter
        self._quote = self.configuration.quote
        self._trim = self.configuration.trim_fields
        self.record_number = 0
        self.line_number = 0
        self.record_start_line = 0
        self.skipped_records = 0

    def __iter__(self) -> Iterator[RawRecord]:
        return self

    def __next__(self) -> RawRecord:
        record = self.read_record()
        if record is None:
            raise StopIteration
        return record

    def read_record(self) -> Optional[RawRecord]:
        """Read the next logical record.

        Returns:
            List of field strings, or None at end of stream

        Raises:
            TokenizationError: If the stream ends inside a quoted field
        """
        while True:
            record = self._read_physical_record()
            if record is None:
                return None
            if self.configuration.skip_empty_records and record == [""]:
                logger.debug(f"Skipping blank line {self.record_start_line}")
                self.record_number -= 1
                self.skipped_records += 1
                continue
            return record

    def _read_physical_record(self) -> Optional[RawRecord]:
        cursor = self._cursor
        ch = cursor.next()
        if ch == "":
            return None

        self.record_number += 1
        self.line_number += 1
        self.record_start_line = self.line_number

        delimiter = self._delimiter
        quote = self._quote
        trim = self._trim

        fields: List[str] = []
        buf: List[str] = []
        state = _FIELD_START

        while ch != "":
            if state == _FIELD_START:
                if ch == quote:
                    state = _QUOTED
                elif ch == delimiter:
                    fields.append("")
                elif ch == "\r" or ch == "\n":
                    self._consume_line_break(ch)
                    fields.append("")
                    return fields
                elif trim and ch in _WHITESPACE:
                    pass
                else:
                    buf.append(ch)
                    state = _UNQUOTED

            elif state == _UNQUOTED:
                if ch == delimiter:
                    fields.append(self._finish_unquoted(buf))
                    buf = []
                    state = _FIELD_START
                elif ch == "\r" or ch == "\n":
                    self._consume_line_break(ch)
                    fields.append(self._finish_unquoted(buf))
                    return fields
                else:
                    buf.append(ch)

            elif state == _QUOTED:
                if ch == quote:
                    state = _POSSIBLE_END_QUOTE
                else:
                    if ch == "\n" or (ch == "\r" and cursor.peek() != "\n"):
                        self.line_number += 1
                    buf.append(ch)

            else:  # _POSSIBLE_END_QUOTE
                if ch == quote:
                    buf.append(quote)
                    state = _QUOTED
                elif ch == delimiter:
                    fields.append("".join(buf))
                    buf = []
                    state = _FIELD_START
                elif ch == "\r" or ch == "\n":
                    self._consume_line_break(ch)
                    fields.append("".join(buf))
                    return fields
                elif trim and ch in _WHITESPACE:
                    pass
                else:
                    # Text after a closing quote is kept as-is
                    buf.append(ch)
                    state = _UNQUOTED

            ch = cursor.next()

        if state == _QUOTED:
            raise TokenizationError(
                "Unterminated quoted field at end of stream",
                record_number=self.record_number,
                line_number=self.record_start_line,
            )
        if state == _UNQUOTED:
            fields.append(self._finish_unquoted(buf))
        else:
            fields.append("".join(buf))
        return fields

    def _consume_line_break(self, ch: str) -> None:
        if ch == "\r" and self._cursor.peek() == "\n":
            self._cursor.next()

    def _finish_unquoted(self, buf: List[str]) -> str:
        text = "".join(buf)
        return text.rstrip(" \t") if self._trim else text


def tokenize(text: str, configuration: Optional[CsvConfiguration] = None) -> List[RawRecord]:
    """Tokenize a whole string into a list of raw records."""
    return list(CsvTokenizer(io.StringIO(text), configuration))


def needs_quoting(field: str, configuration: CsvConfiguration) -> bool:
    """True if the field must be quoted to survive a round trip."""
    if configuration.force_quote:
        return True
    return (configuration.delimiter in field
            or configuration.quote in field
            or "\r" in field
            or "\n" in field)


def quote_field(field: str, configuration: CsvConfiguration) -> str:
    """Wrap a field in quotes, doubling any embedded quote characters."""
    quote = configuration.quote
    return quote + field.replace(quote, quote + quote) + quote


def format_field(field: Optional[str], configuration: CsvConfiguration) -> str:
    text = "" if field is None else field
    if needs_quoting(text, configuration):
        return quote_field(text, configuration)
    return text


def format_record(fields: Iterable[Optional[str]], configuration: Optional[CsvConfiguration] = None) -> str:
    """Serialize one record to a single line (without the line terminator)."""
    configuration = configuration or CsvConfiguration()
    return configuration.delimiter.join(format_field(f, configuration) for f in fields)
