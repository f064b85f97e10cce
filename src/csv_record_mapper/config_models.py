"""
Pydantic models for reader/writer configuration and type conversion options.

All models are frozen: a shared configuration can be handed to any number of
readers, writers and mapping tables without one of them changing it for the
others. Helpers that "modify" an options object return a new instance.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum, IntFlag
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


class NumberStyles(IntFlag):
    """Which characters are allowed when parsing a number."""
    NONE = 0
    ALLOW_LEADING_WHITE = 1
    ALLOW_TRAILING_WHITE = 2
    ALLOW_LEADING_SIGN = 4
    ALLOW_DECIMAL_POINT = 8
    ALLOW_THOUSANDS = 16
    ALLOW_EXPONENT = 32

    INTEGER = ALLOW_LEADING_WHITE | ALLOW_TRAILING_WHITE | ALLOW_LEADING_SIGN
    NUMBER = INTEGER | ALLOW_DECIMAL_POINT | ALLOW_THOUSANDS
    FLOAT = INTEGER | ALLOW_DECIMAL_POINT | ALLOW_EXPONENT
    ANY = NUMBER | ALLOW_EXPONENT


class DateTimeStyles(IntFlag):
    """How date/time strings are interpreted."""
    NONE = 0
    ALLOW_WHITE_SPACES = 1
    ASSUME_UNIVERSAL = 2
    ADJUST_TO_UNIVERSAL = 4


class CultureInfo(BaseModel):
    """Number and date conventions used by the type converters."""
    name: str = Field("", description="Culture name ('' = invariant)")
    decimal_separator: str = Field(".", min_length=1, description="Decimal separator")
    group_separator: str = Field(",", description="Thousands group separator")
    date_format: Optional[str] = Field(None, description="strptime format for dates (None = ISO-8601)")
    datetime_format: Optional[str] = Field(None, description="strptime format for datetimes (None = ISO-8601)")

    model_config = {"frozen": True}

    @model_validator(mode='after')
    def validate_separators(self):
        """Decimal and group separators must be distinguishable."""
        if self.decimal_separator == self.group_separator:
            raise ValueError("decimal_separator and group_separator must differ")
        return self

    @classmethod
    def invariant(cls) -> "CultureInfo":
        return cls()

    @classmethod
    def from_name(cls, name: str) -> "CultureInfo":
        """Look up one of the known culture presets by name.

        Raises:
            ValueError: If the culture name is unknown
        """
        if not name:
            return cls.invariant()
        preset = _CULTURES.get(name.lower())
        if preset is None:
            raise ValueError(f"Unknown culture '{name}'. Known cultures: {', '.join(sorted(_CULTURES))}")
        return cls(name=name, **preset)


_CULTURES: Dict[str, Dict[str, Any]] = {
    "en-us": {"decimal_separator": ".", "group_separator": ",",
              "date_format": "%m/%d/%Y", "datetime_format": "%m/%d/%Y %H:%M:%S"},
    "en-gb": {"decimal_separator": ".", "group_separator": ",",
              "date_format": "%d/%m/%Y", "datetime_format": "%d/%m/%Y %H:%M:%S"},
    "de-de": {"decimal_separator": ",", "group_separator": ".",
              "date_format": "%d.%m.%Y", "datetime_format": "%d.%m.%Y %H:%M:%S"},
    "fr-fr": {"decimal_separator": ",", "group_separator": " ",
              "date_format": "%d/%m/%Y", "datetime_format": "%d/%m/%Y %H:%M:%S"},
}

DEFAULT_TRUE_VALUES: Tuple[str, ...] = ("true", "yes", "y", "t", "1")
DEFAULT_FALSE_VALUES: Tuple[str, ...] = ("false", "no", "n", "f", "0")


class TypeConverterOptions(BaseModel):
    """Options consulted by the type converters for a single member."""
    culture: CultureInfo = Field(default_factory=CultureInfo.invariant, description="Culture for numbers and dates")
    datetime_style: DateTimeStyles = Field(DateTimeStyles.ALLOW_WHITE_SPACES, description="Date/time parsing style")
    number_style: Optional[NumberStyles] = Field(None, description="Number parsing style (None = converter default)")
    format: Optional[str] = Field(None, description="Format string used when parsing dates and formatting values")
    boolean_true_values: Tuple[str, ...] = Field(DEFAULT_TRUE_VALUES, description="Tokens read as True")
    boolean_false_values: Tuple[str, ...] = Field(DEFAULT_FALSE_VALUES, description="Tokens read as False")

    model_config = {"frozen": True}

    @model_validator(mode='after')
    def validate_boolean_tokens(self):
        """A token cannot mean both True and False."""
        true_tokens = {v.lower() for v in self.boolean_true_values}
        false_tokens = {v.lower() for v in self.boolean_false_values}
        overlap = true_tokens & false_tokens
        if overlap:
            raise ValueError(f"Boolean tokens used for both true and false: {', '.join(sorted(overlap))}")
        return self

    def merged(self, **overrides: Any) -> "TypeConverterOptions":
        """Return a copy with the given (non-None) overrides applied."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        return self.model_validate({**self.model_dump(), **update})

    def with_boolean_values(self, is_true: bool, values: List[str], clear: bool = True) -> "TypeConverterOptions":
        """Return a copy with the true (or false) tokens replaced or extended."""
        current = self.boolean_true_values if is_true else self.boolean_false_values
        tokens = tuple(values) if clear else tuple(current) + tuple(values)
        key = "boolean_true_values" if is_true else "boolean_false_values"
        return self.merged(**{key: tokens})


class CsvConfiguration(BaseModel):
    """Reader and writer configuration."""
    delimiter: str = Field(",", description="Field delimiter character")
    quote: str = Field('"', description="Quote character (doubled to escape itself)")
    has_header_record: bool = Field(True, description="First record is a header")
    skip_empty_records: bool = Field(False, description="Skip blank lines instead of yielding ['']")
    force_quote: bool = Field(False, description="Quote every field when writing")
    trim_fields: bool = Field(False, description="Strip surrounding whitespace from unquoted fields")
    throw_on_missing_field: bool = Field(
        True,
        description="Fail binding when a mapped field is absent and no default is configured"
    )
    continue_on_error: bool = Field(
        False,
        description="Log and skip records that fail to tokenize or bind"
    )
    newline: str = Field("\r\n", description="Record terminator used when writing")
    progress_interval: int = Field(0, ge=0, description="Log progress every N records (0 = off)")
    type_converter_options: TypeConverterOptions = Field(
        default_factory=TypeConverterOptions,
        description="Default type conversion options"
    )

    model_config = {"frozen": True}

    @field_validator('delimiter', 'quote')
    @classmethod
    def validate_single_character(cls, value):
        """Delimiter and quote must be one non-newline character."""
        if len(value) != 1:
            raise ValueError(f"must be a single character, got {value!r}")
        if value in ("\r", "\n"):
            raise ValueError("cannot be a line break")
        return value

    @field_validator('newline')
    @classmethod
    def validate_newline(cls, value):
        if value not in ("\r\n", "\n", "\r"):
            raise ValueError(f"newline must be one of CRLF, LF or CR, got {value!r}")
        return value

    @model_validator(mode='after')
    def validate_distinct_characters(self):
        if self.delimiter == self.quote:
            raise ValueError("delimiter and quote must differ")
        return self

    @classmethod
    def from_dict(cls, config_dict: dict) -> "CsvConfiguration":
        """
        Create CsvConfiguration from a dictionary.

        Raises:
            ValidationError: If configuration is invalid
        """
        return cls.model_validate(config_dict)

    @classmethod
    def from_json_file(cls, config_path: str) -> "CsvConfiguration":
        """
        Load and validate configuration from a JSON file.

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If file doesn't exist
        """
        return cls.from_dict(_load_json(config_path))


class FieldType(str, Enum):
    """Member types available to declarative (JSON) mappings."""
    STRING = "string"
    INT = "int"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"


FIELD_TYPES: Dict[FieldType, type] = {
    FieldType.STRING: str,
    FieldType.INT: int,
    FieldType.DECIMAL: Decimal,
    FieldType.FLOAT: float,
    FieldType.BOOLEAN: bool,
    FieldType.DATE: date,
    FieldType.DATETIME: datetime,
    FieldType.TIME: time,
}


class IndexRangeConfig(BaseModel):
    """Contiguous span of fields bound to a list member."""
    start: int = Field(..., ge=0, description="First field index (inclusive)")
    end: Optional[int] = Field(None, ge=0, description="Last field index (inclusive, None = end of record)")


class MemberConfig(BaseModel):
    """Declarative binding for one destination member."""
    member: str = Field(..., min_length=1, description="Destination member name")
    type: FieldType = Field(FieldType.STRING, description="Member type (element type for ranges)")
    names: List[str] = Field(default_factory=list, description="Candidate header names")
    name_index: int = Field(0, ge=0, description="Occurrence of the header name to use")
    index: Optional[int] = Field(None, ge=0, description="Field index")
    index_range: Optional[IndexRangeConfig] = Field(None, description="Field index range")
    ignore: bool = Field(False, description="Skip the member when reading and writing")
    default: Optional[Any] = Field(None, description="Value used when the field is empty or missing")
    nullable: bool = Field(False, description="Empty fields bind to None")
    format: Optional[str] = Field(None, description="Format string for parsing/formatting")
    culture: Optional[str] = Field(None, description="Culture name override")
    number_style: Optional[NumberStyles] = Field(None, description="Number style override (flag names joined with '|')")
    datetime_style: Optional[DateTimeStyles] = Field(None, description="Date/time style override (flag names joined with '|')")
    boolean_true_values: Optional[List[str]] = Field(None, description="Tokens read as True")
    boolean_false_values: Optional[List[str]] = Field(None, description="Tokens read as False")

    model_config = {"populate_by_name": True}

    @model_validator(mode='before')
    @classmethod
    def normalize_name(cls, data):
        """Accept a single 'name' as shorthand for 'names'."""
        if isinstance(data, dict) and "name" in data:
            data = dict(data)
            name = data.pop("name")
            data.setdefault("names", [name] if isinstance(name, str) else list(name))
        return data

    @field_validator('number_style', 'datetime_style', mode='before')
    @classmethod
    def parse_style_names(cls, value, info):
        """Accept flag names joined with '|' as well as integers."""
        if not isinstance(value, str):
            return value
        flag_type = NumberStyles if info.field_name == 'number_style' else DateTimeStyles
        result = flag_type(0)
        for name in value.split("|"):
            key = name.strip().upper()
            if key not in flag_type.__members__:
                raise ValueError(f"Unknown {flag_type.__name__} flag '{name.strip()}'")
            result |= flag_type[key]
        return result

    @model_validator(mode='after')
    def validate_single_selector(self):
        """Only one selector kind may be declared per member."""
        if self.index_range is not None and (self.names or self.index is not None):
            raise ValueError(f"Member '{self.member}': index_range cannot be combined with names or index")
        if self.names and self.index is not None:
            raise ValueError(f"Member '{self.member}': declare either names or index, not both")
        return self


class MappingConfig(BaseModel):
    """Declarative mapping for one record type."""
    name: str = Field("Record", description="Destination record type name")
    members: List[MemberConfig] = Field(..., min_length=1, description="Member declarations")

    @field_validator('members')
    @classmethod
    def validate_unique_member_names(cls, members):
        """Ensure member names are unique."""
        names = [m.member for m in members]
        duplicates = [name for name in set(names) if names.count(name) > 1]
        if duplicates:
            raise ValueError(f"Duplicate member names: {', '.join(sorted(duplicates))}")
        return members

    def to_class_map(self):
        """Synthesize a dataclass destination and a ClassMap for it."""
        from csv_record_mapper.mapping import class_map_from_config

        return class_map_from_config(self)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "MappingConfig":
        return cls.model_validate(config_dict)

    @classmethod
    def from_json_file(cls, config_path: str) -> "MappingConfig":
        """
        Load and validate a mapping from a JSON file.

        Raises:
            ValidationError: If the mapping is invalid
            FileNotFoundError: If file doesn't exist
        """
        return cls.from_dict(_load_json(config_path))


def _load_json(config_path) -> dict:
    import json
    from pathlib import Path

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, encoding='utf-8') as f:
        return json.load(f)
