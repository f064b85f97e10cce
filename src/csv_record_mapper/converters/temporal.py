"""
Date, datetime and time converters.

Parsing tries the member's explicit format, then the culture's format, then
ISO-8601. Formatting uses the first of those that is set.
"""

from datetime import date, datetime, time, timezone
from typing import Any, List, Optional

from csv_record_mapper.config_models import DateTimeStyles, TypeConverterOptions
from csv_record_mapper.converters.base import TypeConverter


def _prepare(text: str, options: TypeConverterOptions) -> str:
    if options.datetime_style & DateTimeStyles.ALLOW_WHITE_SPACES:
        return text.strip()
    return text


def _iso(text: str) -> str:
    # fromisoformat() only accepts a trailing 'Z' from Python 3.11 on
    if text.endswith(("Z", "z")):
        return text[:-1] + "+00:00"
    return text


class DateTimeConverter(TypeConverter):
    target_type = datetime

    def culture_format(self, options: TypeConverterOptions) -> Optional[str]:
        return options.culture.datetime_format

    def candidate_formats(self, options: TypeConverterOptions) -> List[str]:
        return [f for f in (options.format, self.culture_format(options)) if f]

    def parse(self, text: str, options: TypeConverterOptions) -> Any:
        s = _prepare(text, options)
        for fmt in self.candidate_formats(options):
            try:
                return self.finish(datetime.strptime(s, fmt), options)
            except ValueError:
                continue
        try:
            return self.finish(self.from_iso(s), options)
        except ValueError as e:
            raise self.fail(text, str(e)) from e

    def from_iso(self, text: str) -> Any:
        return datetime.fromisoformat(_iso(text))

    def finish(self, value: datetime, options: TypeConverterOptions) -> Any:
        style = options.datetime_style
        if value.tzinfo is None and style & DateTimeStyles.ASSUME_UNIVERSAL:
            value = value.replace(tzinfo=timezone.utc)
        if value.tzinfo is not None and style & DateTimeStyles.ADJUST_TO_UNIVERSAL:
            value = value.astimezone(timezone.utc)
        return value

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if value is None:
            return ""
        formats = self.candidate_formats(options)
        if formats:
            return value.strftime(formats[0])
        return value.isoformat()


class DateConverter(DateTimeConverter):
    target_type = date

    def culture_format(self, options: TypeConverterOptions) -> Optional[str]:
        return options.culture.date_format

    def from_iso(self, text: str) -> date:
        return date.fromisoformat(text)

    def finish(self, value: Any, options: TypeConverterOptions) -> date:
        if isinstance(value, datetime):
            return value.date()
        return value


class TimeConverter(DateTimeConverter):
    target_type = time

    def culture_format(self, options: TypeConverterOptions) -> Optional[str]:
        return None

    def from_iso(self, text: str) -> time:
        return time.fromisoformat(_iso(text))

    def finish(self, value: Any, options: TypeConverterOptions) -> time:
        if isinstance(value, datetime):
            return value.time()
        return value
