"""Tests for binding raw records to objects and back."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import pytest

from csv_record_mapper.binder import RecordBinder, bind_record
from csv_record_mapper.config_models import CsvConfiguration
from csv_record_mapper.exceptions import ConversionError, FieldLookupError, RecordBindingError
from csv_record_mapper.mapping import ClassMap

HEADER = ["order_id", "customer", "total", "quantity", "shipped"]


@dataclass
class Order:
    order_id: str
    customer: str
    total: Decimal
    quantity: int = 0
    shipped: Optional[bool] = None


@dataclass
class Survey:
    respondent: str = ""
    scores: List[int] = field(default_factory=list)
    consent: bool = False


@pytest.fixture
def order_table():
    return ClassMap(Order).build()


class TestBind:

    def test_bind_by_header_name(self, order_table):
        binder = RecordBinder(order_table, header=HEADER)
        order = binder.bind(["ORD001", "John", "150.25", "3", "yes"])
        assert order == Order("ORD001", "John", Decimal("150.25"), 3, True)

    def test_header_order_does_not_matter(self, order_table):
        header = ["shipped", "quantity", "total", "customer", "order_id"]
        order = bind_record(["no", "1", "9.99", "Jane", "ORD002"], order_table, header=header)
        assert order == Order("ORD002", "Jane", Decimal("9.99"), 1, False)

    def test_no_header_uses_declaration_order(self, order_table):
        order = bind_record(["ORD003", "Bob", "1.00", "2", "n"], order_table)
        assert order.order_id == "ORD003"
        assert order.shipped is False

    def test_empty_optional_is_none(self, order_table):
        order = bind_record(["ORD001", "John", "1", "3", ""], order_table, header=HEADER)
        assert order.shipped is None

    def test_empty_field_uses_default(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("quantity").default(0)
        order = bind_record(["ORD001", "John", "1", "", ""], class_map.build(), header=HEADER)
        assert order.quantity == 0

    def test_conversion_failure_uses_default(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("quantity").default(-1)
        order = bind_record(["ORD001", "John", "1", "many", ""], class_map.build(), header=HEADER)
        assert order.quantity == -1

    def test_errors_are_aggregated(self, order_table):
        with pytest.raises(RecordBindingError) as exc_info:
            RecordBinder(order_table, header=HEADER).bind(["ORD001", "John", "abc", "x", ""], record_number=7)
        error = exc_info.value
        assert error.record_number == 7
        assert error.raw_record == ["ORD001", "John", "abc", "x", ""]
        assert [type(e) for e in error.errors] == [ConversionError, ConversionError]
        assert error.errors[0].member == "total"
        assert error.errors[0].field_index == 2
        assert error.errors[1].raw_value == "x"

    def test_missing_header_name(self, order_table):
        with pytest.raises(RecordBindingError) as exc_info:
            bind_record(["ORD001", "John", "1"], order_table, header=["order_id", "customer", "total"])
        lookups = exc_info.value.errors
        assert {e.member for e in lookups} == {"quantity", "shipped"}
        assert all(isinstance(e, FieldLookupError) for e in lookups)

    def test_missing_field_tolerated_when_configured(self, order_table):
        configuration = CsvConfiguration(throw_on_missing_field=False)
        order = bind_record(["ORD001", "John", "5"], order_table, configuration, header=HEADER)
        assert order.quantity == 0
        assert order.shipped is None

    def test_short_record_without_header(self, order_table):
        with pytest.raises(RecordBindingError) as exc_info:
            bind_record(["ORD001", "John"], order_table)
        assert "beyond record length" in str(exc_info.value)

    def test_duplicate_header_names(self):
        @dataclass
        class Names:
            first: str = ""
            second: str = ""

        class_map = ClassMap(Names)
        class_map.map("first").name("Name")
        class_map.map("second").name("Name").name_index(1)
        names = bind_record(["a", "b", "c"], class_map.build(), header=["Name", "Name", "Other"])
        assert names == Names("a", "b")

    def test_alternative_names(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("customer").name("Customer Name", "customer")
        order = bind_record(["ORD001", "John", "1", "1", "y"], class_map.build(), header=HEADER)
        assert order.customer == "John"

    def test_index_selector_ignores_header(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent").index(2)
        survey = bind_record(["x", "y", "z"], class_map.build(), header=["a", "b", "c"])
        assert survey.respondent == "z"

    def test_member_options_do_not_leak(self):
        @dataclass
        class Flags:
            french: bool = False
            english: bool = False

        class_map = ClassMap(Flags)
        class_map.map("french").boolean_values(True, "oui").boolean_values(False, "non")
        class_map.map("english")
        configuration = CsvConfiguration()
        flags = bind_record(["oui", "yes"], class_map.build(), configuration, header=["french", "english"])
        assert flags == Flags(True, True)
        assert "oui" not in configuration.type_converter_options.boolean_true_values

        with pytest.raises(RecordBindingError):
            bind_record(["oui", "oui"], class_map.build(), configuration, header=["french", "english"])

    def test_culture_override(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("total").type_converter_option(culture="de-DE")
        order = bind_record(["ORD001", "John", "1.234,5", "1", ""], class_map.build(), header=HEADER)
        assert order.total == Decimal("1234.5")

    def test_convert_using(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("customer").convert_using(str.title)
        order = bind_record(["ORD001", "jane doe", "1", "1", ""], class_map.build(), header=HEADER)
        assert order.customer == "Jane Doe"

    def test_ignored_member_keeps_default(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent").ignore()
        class_map.map("scores").index_range(0, 1)
        class_map.map("consent").index(2)
        survey = bind_record(["4", "5", "yes", "extra"], class_map.build())
        assert survey == Survey("", [4, 5], True)


class TestUnbind:

    def test_unbind_by_declaration_order(self, order_table):
        binder = RecordBinder(order_table)
        fields = binder.unbind(Order("ORD001", "John", Decimal("150.25"), 3, True))
        assert fields == ["ORD001", "John", "150.25", "3", "true"]

    def test_none_is_empty(self, order_table):
        fields = RecordBinder(order_table).unbind(Order("ORD001", "John", Decimal("1"), 3))
        assert fields[-1] == ""

    def test_header_record(self, order_table):
        assert RecordBinder(order_table).header_record() == HEADER

    def test_header_uses_first_name(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("order_id").name("Order ID", "order_id")
        assert RecordBinder(class_map.build()).header_record()[0] == "Order ID"

    def test_unbind_unbounded_range(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent")
        class_map.map("scores").index_range(1)
        binder = RecordBinder(class_map.build())
        survey = Survey("ann", [1, 2, 3])
        assert binder.unbind(survey) == ["ann", "1", "2", "3"]
        assert binder.header_record(survey) == ["respondent", "scores1", "scores2", "scores3"]

    def test_unbind_bounded_range_pads_and_truncates(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent").index(0)
        class_map.map("scores").index_range(1, 3)
        binder = RecordBinder(class_map.build())
        assert binder.unbind(Survey("ann", [7])) == ["ann", "7", "", ""]
        assert binder.unbind(Survey("bob", [1, 2, 3, 4])) == ["bob", "1", "2", "3"]

    def test_sparse_indexes_leave_gaps(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent").index(0)
        class_map.map("consent").index(3)
        binder = RecordBinder(class_map.build())
        assert binder.unbind(Survey("ann", consent=True)) == ["ann", "", "", "true"]

    def test_member_format_option(self):
        class_map = ClassMap(Order)
        class_map.auto_map()
        class_map.map("total").type_converter_option(format=".2f")
        fields = RecordBinder(class_map.build()).unbind(Order("ORD001", "John", Decimal("5"), 1))
        assert fields[2] == "5.00"


@dataclass
class Sample:
    values: List[int] = field(default_factory=list)
    id: int = 0


class TestLayout:
    """Name-selected members take positions left free by indexes and ranges."""

    def test_name_member_after_bounded_range(self):
        class_map = ClassMap(Sample)
        class_map.map("values").index_range(0, 1)
        class_map.map("id")
        table = class_map.build()
        binder = RecordBinder(table)

        assert binder.unbind(Sample([10, 20], 99)) == ["10", "20", "99"]
        assert binder.header_record() == ["values1", "values2", "id"]
        assert bind_record(["10", "20", "99"], table) == Sample([10, 20], 99)

    def test_name_member_skips_explicit_index(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent")
        class_map.map("consent").index(0)
        binder = RecordBinder(class_map.build())

        assert binder.unbind(Survey("ann", consent=True)) == ["true", "ann"]
        assert binder.bind(["no", "bob"]) == Survey("bob", [], False)


class TestDefaults:

    def test_mutable_default_is_not_shared(self):
        class_map = ClassMap(Survey)
        class_map.map("respondent").index(0)
        class_map.map("scores").index_range(1, 3).default([])
        table = class_map.build()
        binder = RecordBinder(table)

        first = binder.bind(["a"])
        second = binder.bind(["b"])
        first.scores.append(5)

        assert second.scores == []
        assert table.binding("scores").default == []
