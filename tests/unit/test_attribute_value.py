from __future__ import annotations

import pytest
from boto3.dynamodb.types import Binary

from fluentdb_py.attribute_value import AttributeValue, from_dynamodb_map, to_dynamodb_map
from fluentdb_py.errors import ValidationError


def test_wire_shapes() -> None:
    assert AttributeValue.string("x").to_dynamodb() == {"S": "x"}
    assert AttributeValue.number("1.5").to_dynamodb() == {"N": "1.5"}
    assert AttributeValue.boolean(False).to_dynamodb() == {"BOOL": False}
    assert AttributeValue.boolean(None).to_dynamodb() == {"NULL": True}
    assert AttributeValue.null().to_dynamodb() == {"NULL": True}
    assert AttributeValue.string_set(["a", "b"]).to_dynamodb() == {"SS": ["a", "b"]}
    assert AttributeValue.list_([AttributeValue.number("1")]).to_dynamodb() == {"L": [{"N": "1"}]}
    assert AttributeValue.map_({"a": AttributeValue.null()}).to_dynamodb() == {"M": {"a": {"NULL": True}}}


def test_unset_bool_flags() -> None:
    unset = AttributeValue.boolean(None)
    assert unset.is_bool_set is False
    assert unset.is_null is False
    assert AttributeValue.boolean(True).is_bool_set is True


def test_empty_sets_are_rejected() -> None:
    with pytest.raises(ValidationError):
        AttributeValue.string_set([])
    with pytest.raises(ValidationError):
        AttributeValue.number_set([])
    with pytest.raises(ValidationError):
        AttributeValue.binary_set([])


def test_from_dynamodb_accepts_boto3_binary() -> None:
    av = AttributeValue.from_dynamodb({"B": Binary(b"\x00\x01")})
    assert av == AttributeValue.binary(b"\x00\x01")


def test_from_dynamodb_map_nested() -> None:
    raw = {"pk": {"S": "A"}, "tags": {"L": [{"S": "x"}, {"M": {"n": {"N": "2"}}}]}}
    decoded = from_dynamodb_map(raw)
    assert decoded["tags"].type == "L"
    assert to_dynamodb_map(decoded) == raw


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"S": "x", "N": "1"},
        {"S": 1},
        {"BOOL": "true"},
        {"B": "not-bytes"},
        {"X": "nope"},
    ],
)
def test_from_dynamodb_validation(raw: dict) -> None:
    with pytest.raises(ValidationError):
        AttributeValue.from_dynamodb(raw)
