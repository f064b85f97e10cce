"""Tests for the character-level tokenizer and the field quoting writer."""

import io

import pytest

from csv_record_mapper.config_models import CsvConfiguration
from csv_record_mapper.exceptions import TokenizationError
from csv_record_mapper.tokenizer import (
    CharacterCursor,
    CsvTokenizer,
    format_record,
    needs_quoting,
    tokenize,
)


class TestReading:
    """Splitting text into records and fields."""

    def test_simple_records(self):
        assert tokenize("a,b,c\n1,2,3\n") == [["a", "b", "c"], ["1", "2", "3"]]

    def test_missing_final_newline(self):
        assert tokenize("a,b\n1,2") == [["a", "b"], ["1", "2"]]

    def test_line_break_styles(self):
        """CRLF, LF and CR all terminate a record."""
        assert tokenize("a,b\r\nc,d\ne,f\rg,h") == [["a", "b"], ["c", "d"], ["e", "f"], ["g", "h"]]

    def test_empty_fields(self):
        assert tokenize(",,\n") == [["", "", ""]]

    def test_ragged_records(self):
        """Records keep their own length; nothing is padded."""
        assert tokenize("1,2,3\n4\n5,6\n") == [["1", "2", "3"], ["4"], ["5", "6"]]

    def test_quoted_delimiter(self):
        assert tokenize('"a,b",c\n') == [["a,b", "c"]]

    def test_doubled_quote_collapses(self):
        assert tokenize('"say ""hi""",x\n') == [['say "hi"', "x"]]

    def test_quoted_empty_field(self):
        assert tokenize('"",a\n') == [["", "a"]]

    def test_embedded_line_break(self):
        tokenizer = CsvTokenizer(io.StringIO('id,text\n1,"line one\nline two"\n2,x\n'))
        records = list(tokenizer)
        assert records == [["id", "text"], ["1", "line one\nline two"], ["2", "x"]]
        assert tokenizer.record_number == 3
        assert tokenizer.record_start_line == 4

    def test_quote_inside_unquoted_field_is_literal(self):
        assert tokenize('ab"c,d\n') == [['ab"c', "d"]]

    def test_text_after_closing_quote_is_kept(self):
        assert tokenize('"ab"c,d\n') == [["abc", "d"]]

    def test_blank_line_yields_single_empty_field(self):
        assert tokenize("a\n\nb\n") == [["a"], [""], ["b"]]

    def test_skip_empty_records(self):
        config = CsvConfiguration(skip_empty_records=True)
        tokenizer = CsvTokenizer(io.StringIO("a\n\nb\n\n"), config)
        assert list(tokenizer) == [["a"], ["b"]]
        assert tokenizer.skipped_records == 2
        assert tokenizer.record_number == 2

    def test_custom_delimiter_and_quote(self):
        config = CsvConfiguration(delimiter=";", quote="'")
        assert tokenize("a;'b;c';'it''s'\n", config) == [["a", "b;c", "it's"]]

    def test_trim_fields(self):
        config = CsvConfiguration(trim_fields=True)
        assert tokenize('  a , b \n "x" ,y\n', config) == [["a", "b"], ["x", "y"]]

    def test_whitespace_kept_by_default(self):
        assert tokenize(" a , b \n") == [[" a ", " b "]]

    def test_empty_stream(self):
        assert tokenize("") == []


class TestMalformedInput:
    """Unterminated quotes are reported, not silently closed."""

    def test_unterminated_quote_raises(self):
        with pytest.raises(TokenizationError) as exc_info:
            tokenize('a,"bc\n')
        assert exc_info.value.record_number == 1
        assert exc_info.value.line_number == 1

    def test_records_before_error_are_delivered(self):
        tokenizer = CsvTokenizer(io.StringIO('ok,1\n"bad\nstill bad'))
        assert next(tokenizer) == ["ok", "1"]
        with pytest.raises(TokenizationError) as exc_info:
            next(tokenizer)
        assert exc_info.value.record_number == 2
        assert tokenizer.read_record() is None


class TestWriting:
    """Quoting rules of the writing side."""

    def test_plain_fields_are_not_quoted(self):
        assert format_record(["a", "1", ""]) == "a,1,"

    def test_special_fields_are_quoted(self):
        line = format_record(["a,b", 'q"x', "l\nm", "r\rn", "plain"])
        assert line == '"a,b","q""x","l\nm","r\rn",plain'

    def test_force_quote(self):
        config = CsvConfiguration(force_quote=True)
        assert format_record(["a", "1"], config) == '"a","1"'

    def test_none_is_empty(self):
        assert format_record([None, "x"]) == ",x"

    def test_needs_quoting_uses_configured_characters(self):
        config = CsvConfiguration(delimiter="|", quote="'")
        assert needs_quoting("a|b", config)
        assert needs_quoting("it's", config)
        assert not needs_quoting('a,"b"', config)


class TestRoundTrip:
    """Tokenizing and writing are inverse operations."""

    @pytest.mark.parametrize("line", ["a,b,c", "1,,3", "x", "with space,tab\there"])
    def test_unquoted_records_are_byte_identical(self, line):
        records = tokenize(line + "\n")
        assert format_record(records[0]) == line

    @pytest.mark.parametrize("value", ["a,b", 'say "hi"', "two\nlines", "crlf\r\nend", '"', ",", ""])
    def test_special_values_survive(self, value):
        line = format_record([value, "tail"])
        assert tokenize(line + "\r\n") == [[value, "tail"]]

    def test_round_trip_with_semicolons(self):
        config = CsvConfiguration(delimiter=";")
        fields = ["a;b", "c,d", 'e"f']
        assert tokenize(format_record(fields, config), config) == [fields]


def test_character_cursor_across_chunks():
    """next/peek work across buffer refills."""
    cursor = CharacterCursor(io.StringIO("abc"), buffer_size=1)
    assert cursor.next() == "a"
    assert cursor.peek() == "b"
    assert cursor.next() == "b"
    assert cursor.next() == "c"
    assert cursor.peek() == ""
    assert cursor.next() == ""
