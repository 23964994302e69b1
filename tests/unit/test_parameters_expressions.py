from __future__ import annotations

import threading
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from fluentdb_py.attribute_value import AttributeValue
from fluentdb_py.errors import ArgumentError, FormatError
from fluentdb_py.expressions import format_expression
from fluentdb_py.parameters import AttributeNames, AttributeValues, ParameterGenerator


def test_parameter_generator_counts_and_resets() -> None:
    gen = ParameterGenerator()
    assert [gen.generate_parameter_name() for _ in range(3)] == [":p0", ":p1", ":p2"]
    gen.reset()
    assert gen.generate_parameter_name() == ":p0"

    other = ParameterGenerator()
    assert other.generate_parameter_name() == ":p0"


def test_parameter_generator_is_unique_under_contention() -> None:
    gen = ParameterGenerator()
    names: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        local = [gen.generate_parameter_name() for _ in range(200)]
        with lock:
            names.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(names) == 1600
    assert len(set(names)) == 1600


def test_with_value_skips_absent_values() -> None:
    values = AttributeValues()
    values.with_value(":a", "x")
    values.with_value(":skipped", "y", conditional_use=False)
    values.with_value(":none", None)
    values.with_value(":empty", [])
    values.with_value(":flag", None, kind="bool")

    assert values.values[":a"] == AttributeValue.string("x")
    assert ":skipped" not in values
    assert ":none" not in values
    assert ":empty" not in values
    assert values.values[":flag"].to_dynamodb() == {"NULL": True}


def test_with_value_rejects_bad_and_duplicate_names() -> None:
    values = AttributeValues()
    with pytest.raises(ArgumentError, match="must start with ':'"):
        values.with_value("a", 1)
    values.with_value(":a", 1)
    with pytest.raises(ArgumentError, match="duplicate"):
        values.with_value(":a", 2)


def test_add_formatted_value_rejects_empty_collections() -> None:
    values = AttributeValues()
    with pytest.raises(ArgumentError, match="DynamoDB does not support empty Maps, Sets, or Lists"):
        values.add_formatted_value([])
    assert values.add_formatted_value(Decimal("1.5"), "F2") == ":p0"
    assert values.values[":p0"] == AttributeValue.number("1.50")


def test_attribute_names_conflicts() -> None:
    names = AttributeNames()
    names.with_attribute("#s", "status")
    names.with_attribute("#s", "status")
    with pytest.raises(ArgumentError, match="already mapped"):
        names.with_attribute("#s", "state")
    with pytest.raises(ArgumentError):
        names.with_attribute("s", "status")
    assert names.values == {"#s": "status"}


def test_format_expression_replaces_tokens_in_order() -> None:
    values = AttributeValues()
    out = format_expression("#s = {0} AND price > {1:F2}", ["ACTIVE", 9.5], values)

    assert out.expression == "#s = :p0 AND price > :p1"
    assert out.parameters == {":p0": AttributeValue.string("ACTIVE"), ":p1": AttributeValue.number("9.50")}
    assert values.values == out.parameters


def test_format_expression_gives_repeated_index_fresh_names() -> None:
    values = AttributeValues()
    out = format_expression("a = {0} OR b = {0}", [1], values)
    assert out.expression == "a = :p0 OR b = :p1"
    assert len(values) == 2


def test_format_expression_leaves_named_placeholders_alone() -> None:
    values = AttributeValues()
    values.with_value(":pk", "A")
    out = format_expression("pk = :pk AND created < {0:yyyy-MM-dd}", [datetime(2024, 3, 5, tzinfo=UTC)], values)
    assert out.expression == "pk = :pk AND created < :p0"
    assert values.values[":p0"] == AttributeValue.string("2024-03-05")


def test_format_expression_without_tokens_is_unchanged() -> None:
    values = AttributeValues()
    out = format_expression("attribute_exists(pk)", [], values)
    assert out.expression == "attribute_exists(pk)"
    assert out.parameters == {}


@pytest.mark.parametrize(
    ("template", "args", "error", "message"),
    [
        ("", [], ArgumentError, "cannot be null or empty"),
        ("a = {0", [1], FormatError, "unmatched braces"),
        ("a = {x}", [1], FormatError, "invalid parameter indices: {x}"),
        ("a = {-1}", [1], FormatError, "invalid parameter indices: {-1}"),
        ("a = {0} AND b = {2}", [1, 2], ArgumentError, "references parameter index 2 but only 2 arguments"),
        ("a = {0:Q}", [1], FormatError, "Invalid format specifier 'Q' for parameter at index 0"),
        ("a = {0:X}", [True], FormatError, "Boolean values do not support format strings"),
        ("a = {0}", [[]], ArgumentError, "Cannot use empty collection"),
    ],
)
def test_format_expression_errors(template: str, args: list[object], error: type[Exception], message: str) -> None:
    values = AttributeValues()
    with pytest.raises(error, match=message.replace("{", r"\{").replace("}", r"\}")):
        format_expression(template, args, values)


def test_failed_format_registers_nothing() -> None:
    values = AttributeValues()
    with pytest.raises(FormatError):
        format_expression("a = {0} AND b = {1:Q}", [1, 2], values)
    assert len(values) == 0
    assert values.generator.generate_parameter_name() == ":p0"


def test_format_expression_maps_none_argument_to_null() -> None:
    values = AttributeValues()
    out = format_expression("pk = {0} AND sk = {1}", ["USER#1", None], values)

    assert out.expression == "pk = :p0 AND sk = :p1"
    assert out.parameters == {":p0": AttributeValue.string("USER#1"), ":p1": AttributeValue.null()}


def test_clashing_generated_name_leaves_values_untouched() -> None:
    values = AttributeValues()
    values.with_value(":p1", "x")

    with pytest.raises(ArgumentError, match="duplicate expression attribute value: :p1"):
        format_expression("a = {0} AND b = {1}", [1, 2], values)

    assert values.values == {":p1": AttributeValue.string("x")}
