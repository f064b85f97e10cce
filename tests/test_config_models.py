"""Tests for the pydantic configuration models."""

import json

import pytest
from pydantic import ValidationError

from csv_record_mapper.config_models import (
    CsvConfiguration,
    CultureInfo,
    DateTimeStyles,
    MappingConfig,
    MemberConfig,
    NumberStyles,
    TypeConverterOptions,
)


class TestCsvConfiguration:

    def test_defaults(self):
        config = CsvConfiguration()
        assert config.delimiter == ","
        assert config.quote == '"'
        assert config.has_header_record is True
        assert config.newline == "\r\n"
        assert config.type_converter_options.datetime_style == DateTimeStyles.ALLOW_WHITE_SPACES

    @pytest.mark.parametrize("kwargs", [
        {"delimiter": ";;"},
        {"delimiter": ""},
        {"delimiter": "\n"},
        {"quote": "\r"},
        {"delimiter": "'", "quote": "'"},
        {"newline": "\n\r"},
        {"progress_interval": -1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            CsvConfiguration(**kwargs)

    def test_frozen(self):
        config = CsvConfiguration()
        with pytest.raises(ValidationError):
            config.delimiter = ";"

    def test_from_json_file(self, tmp_path):
        config_file = tmp_path / "csv.json"
        config_file.write_text(json.dumps({
            "delimiter": "|",
            "has_header_record": False,
            "type_converter_options": {
                "culture": {"name": "custom", "decimal_separator": ",", "group_separator": "."},
                "boolean_true_values": ["ja"],
                "boolean_false_values": ["nein"],
            }
        }))
        config = CsvConfiguration.from_json_file(config_file)
        assert config.delimiter == "|"
        assert config.has_header_record is False
        assert config.type_converter_options.culture.decimal_separator == ","
        assert config.type_converter_options.boolean_true_values == ("ja",)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CsvConfiguration.from_json_file(tmp_path / "missing.json")


class TestTypeConverterOptions:

    def test_overlapping_boolean_tokens(self):
        with pytest.raises(ValidationError):
            TypeConverterOptions(boolean_true_values=("yes",), boolean_false_values=("YES",))

    def test_with_boolean_values_extends(self):
        options = TypeConverterOptions().with_boolean_values(True, ["oui"], clear=False)
        assert options.boolean_true_values[-1] == "oui"
        assert "true" in options.boolean_true_values

    def test_culture_presets(self):
        german = CultureInfo.from_name("de-DE")
        assert (german.decimal_separator, german.group_separator) == (",", ".")
        assert CultureInfo.from_name("") == CultureInfo.invariant()
        with pytest.raises(ValueError):
            CultureInfo.from_name("xx-XX")

    def test_culture_separators_must_differ(self):
        with pytest.raises(ValidationError):
            CultureInfo(decimal_separator=",", group_separator=",")

    def test_number_style_composition(self):
        assert NumberStyles.INTEGER & NumberStyles.ALLOW_LEADING_SIGN
        assert not NumberStyles.INTEGER & NumberStyles.ALLOW_DECIMAL_POINT
        assert NumberStyles.ANY & NumberStyles.ALLOW_EXPONENT


class TestMappingConfig:

    def test_name_shorthand(self):
        member = MemberConfig.model_validate({"member": "total", "name": "Total"})
        assert member.names == ["Total"]

    @pytest.mark.parametrize("data", [
        {"member": "x", "index": 0, "names": ["X"]},
        {"member": "x", "index": 0, "index_range": {"start": 1}},
        {"member": "x", "index_range": {"start": -1}},
        {"member": "x", "type": "complex"},
        {"member": ""},
    ])
    def test_invalid_member(self, data):
        with pytest.raises(ValidationError):
            MemberConfig.model_validate(data)

    def test_duplicate_members(self):
        with pytest.raises(ValidationError, match="Duplicate member names"):
            MappingConfig.from_dict({"members": [{"member": "a"}, {"member": "a"}]})

    def test_members_required(self):
        with pytest.raises(ValidationError):
            MappingConfig.from_dict({"members": []})

    def test_from_json_file(self, orders_mapping_file):
        config = MappingConfig.from_json_file(orders_mapping_file)
        assert config.name == "Order"
        assert [m.member for m in config.members] == ["order_id", "customer", "total", "quantity", "shipped"]
        assert "default" in config.members[3].model_fields_set
        assert "default" not in config.members[0].model_fields_set


class TestMemberStyles:

    def test_style_names(self):
        member = MemberConfig.model_validate({
            "member": "x",
            "number_style": "ALLOW_LEADING_SIGN | allow_decimal_point",
            "datetime_style": "ASSUME_UNIVERSAL",
        })
        assert member.number_style == NumberStyles.ALLOW_LEADING_SIGN | NumberStyles.ALLOW_DECIMAL_POINT
        assert member.datetime_style == DateTimeStyles.ASSUME_UNIVERSAL

    def test_style_integer(self):
        member = MemberConfig.model_validate({"member": "x", "number_style": 8})
        assert member.number_style == NumberStyles.ALLOW_DECIMAL_POINT

    def test_unknown_style_name(self):
        with pytest.raises(ValidationError, match="Unknown NumberStyles flag"):
            MemberConfig.model_validate({"member": "x", "number_style": "ALLOW_EVERYTHING"})
