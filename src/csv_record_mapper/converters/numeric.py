"""
Number converters honoring NumberStyles and culture separators.
"""

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from csv_record_mapper.config_models import NumberStyles, TypeConverterOptions
from csv_record_mapper.converters.base import TypeConverter

_NUMBER_RE = re.compile(r'^(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_SPECIAL_FLOATS = {"nan", "inf", "infinity"}


class NumberConverter(TypeConverter):
    """Shared normalization for culture-aware number parsing."""

    default_style = NumberStyles.NUMBER

    def normalize(self, text: str, options: TypeConverterOptions) -> str:
        """Reduce ``text`` to a plain invariant literal (sign, digits, '.', exponent)."""
        style = options.number_style if options.number_style is not None else self.default_style
        culture = options.culture
        s = text
        if style & NumberStyles.ALLOW_LEADING_WHITE:
            s = s.lstrip()
        if style & NumberStyles.ALLOW_TRAILING_WHITE:
            s = s.rstrip()
        if not s:
            raise self.fail(text, "empty value")

        sign = ""
        if s[0] in "+-":
            if not style & NumberStyles.ALLOW_LEADING_SIGN:
                raise self.fail(text, "sign not allowed")
            sign, s = s[0], s[1:]

        if style & NumberStyles.ALLOW_THOUSANDS and culture.group_separator:
            s = s.replace(culture.group_separator, "")

        if culture.decimal_separator in s:
            if not style & NumberStyles.ALLOW_DECIMAL_POINT:
                raise self.fail(text, "decimal point not allowed")
            if culture.decimal_separator != ".":
                if "." in s:
                    raise self.fail(text, "unexpected '.' for culture")
                s = s.replace(culture.decimal_separator, ".")
        elif "." in s:
            raise self.fail(text, "unexpected '.' for culture")

        if ("e" in s or "E" in s) and not style & NumberStyles.ALLOW_EXPONENT:
            raise self.fail(text, "exponent not allowed")

        if not _NUMBER_RE.match(s):
            raise self.fail(text, "not a number")
        return sign + s

    def format(self, value: Any, options: TypeConverterOptions) -> str:
        if value is None:
            return ""
        text = self.format_invariant(value, options)
        culture = options.culture
        if culture.decimal_separator != "." or culture.group_separator != ",":
            text = text.translate(str.maketrans({".": culture.decimal_separator, ",": culture.group_separator}))
        return text

    def format_invariant(self, value: Any, options: TypeConverterOptions) -> str:
        if options.format:
            return format(value, options.format)
        return str(value)


class IntConverter(NumberConverter):
    target_type = int
    default_style = NumberStyles.INTEGER

    def parse(self, text: str, options: TypeConverterOptions) -> int:
        literal = self.normalize(text, options)
        try:
            number = Decimal(literal)
        except InvalidOperation as e:
            raise self.fail(text, str(e)) from e
        if number != number.to_integral_value():
            raise self.fail(text, "not an integer")
        return int(number)


class FloatConverter(NumberConverter):
    target_type = float
    default_style = NumberStyles.ANY

    def parse(self, text: str, options: TypeConverterOptions) -> float:
        stripped = text.strip().lower().lstrip("+-")
        if stripped in _SPECIAL_FLOATS:
            return float(text.strip())
        return float(self.normalize(text, options))

    def format_invariant(self, value: Any, options: TypeConverterOptions) -> str:
        if not options.format and isinstance(value, float) and math.isfinite(value):
            return repr(value)
        return super().format_invariant(value, options)


class DecimalConverter(NumberConverter):
    target_type = Decimal
    default_style = NumberStyles.NUMBER

    def parse(self, text: str, options: TypeConverterOptions) -> Decimal:
        literal = self.normalize(text, options)
        try:
            return Decimal(literal)
        except InvalidOperation as e:
            raise self.fail(text, str(e)) from e

    def format_invariant(self, value: Any, options: TypeConverterOptions) -> str:
        if not options.format and isinstance(value, Decimal):
            return format(value, "f")
        return super().format_invariant(value, options)
