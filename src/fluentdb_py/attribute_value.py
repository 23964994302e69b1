from __future__ import annotations

import base64
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, cast

from boto3.dynamodb.types import Binary

from .errors import ValidationError

type AttributeType = Literal["S", "N", "B", "BOOL", "NULL", "SS", "NS", "BS", "L", "M"]

_SET_TYPES = frozenset({"SS", "NS", "BS"})


def _as_bytes(value: Any, *, context: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Binary):
        return bytes(cast(Any, value))
    raise ValidationError(f"{context}: B must be bytes")


@dataclass(frozen=True)
class AttributeValue:
    """One attribute as exchanged with DynamoDB.

    Exactly one tag is populated. ``BOOL`` with ``value=None`` is an unset
    boolean: the key is present but carries no truth value, and it is sent
    over the wire as ``NULL``.
    """

    type: AttributeType
    value: Any = None

    @staticmethod
    def string(value: str) -> AttributeValue:
        return AttributeValue("S", value)

    @staticmethod
    def number(text: str) -> AttributeValue:
        return AttributeValue("N", text)

    @staticmethod
    def boolean(value: bool | None) -> AttributeValue:
        return AttributeValue("BOOL", value)

    @staticmethod
    def null() -> AttributeValue:
        return AttributeValue("NULL", True)

    @staticmethod
    def binary(value: bytes) -> AttributeValue:
        return AttributeValue("B", _as_bytes(value, context="binary"))

    @staticmethod
    def string_set(values: Iterable[str]) -> AttributeValue:
        out = tuple(values)
        if not out:
            raise ValidationError("SS cannot be empty")
        return AttributeValue("SS", out)

    @staticmethod
    def number_set(values: Iterable[str]) -> AttributeValue:
        out = tuple(values)
        if not out:
            raise ValidationError("NS cannot be empty")
        return AttributeValue("NS", out)

    @staticmethod
    def binary_set(values: Iterable[bytes]) -> AttributeValue:
        out = tuple(_as_bytes(v, context="binary_set") for v in values)
        if not out:
            raise ValidationError("BS cannot be empty")
        return AttributeValue("BS", out)

    @staticmethod
    def list_(values: Iterable[AttributeValue]) -> AttributeValue:
        return AttributeValue("L", tuple(values))

    @staticmethod
    def map_(values: Mapping[str, AttributeValue]) -> AttributeValue:
        return AttributeValue("M", dict(values))

    @property
    def is_null(self) -> bool:
        return self.type == "NULL"

    @property
    def is_bool_set(self) -> bool:
        return self.type == "BOOL" and self.value is not None

    def to_dynamodb(self) -> dict[str, Any]:
        if self.type == "NULL" or (self.type == "BOOL" and self.value is None):
            return {"NULL": True}
        if self.type in {"S", "N", "B", "BOOL"}:
            return {self.type: self.value}
        if self.type in _SET_TYPES:
            return {self.type: list(self.value)}
        if self.type == "L":
            return {"L": [v.to_dynamodb() for v in self.value]}
        if self.type == "M":
            return {"M": {k: v.to_dynamodb() for k, v in self.value.items()}}
        raise ValidationError(f"unsupported attribute value type: {self.type}")

    @staticmethod
    def from_dynamodb(raw: Mapping[str, Any]) -> AttributeValue:
        if not isinstance(raw, Mapping) or len(raw) != 1:
            raise ValidationError("attribute value must be a single-key map")
        (kind, value), *_ = raw.items()

        if kind in {"S", "N"}:
            if not isinstance(value, str):
                raise ValidationError(f"{kind} value must be a string")
            return AttributeValue(kind, value)
        if kind == "B":
            return AttributeValue("B", _as_bytes(value, context="from_dynamodb"))
        if kind == "BOOL":
            if not isinstance(value, bool):
                raise ValidationError("BOOL value must be a boolean")
            return AttributeValue("BOOL", value)
        if kind == "NULL":
            return AttributeValue.null()
        if kind in {"SS", "NS"}:
            return AttributeValue(kind, tuple(str(v) for v in value))
        if kind == "BS":
            return AttributeValue("BS", tuple(_as_bytes(v, context="from_dynamodb") for v in value))
        if kind == "L":
            return AttributeValue("L", tuple(AttributeValue.from_dynamodb(v) for v in value))
        if kind == "M":
            return AttributeValue("M", {str(k): AttributeValue.from_dynamodb(v) for k, v in value.items()})
        raise ValidationError(f"unsupported attribute value type: {kind}")


def to_dynamodb_map(values: Mapping[str, AttributeValue]) -> dict[str, Any]:
    return {k: v.to_dynamodb() for k, v in values.items()}


def from_dynamodb_map(raw: Mapping[str, Any]) -> dict[str, AttributeValue]:
    return {str(k): AttributeValue.from_dynamodb(v) for k, v in raw.items()}


def marshal_attribute_value_json(av: AttributeValue) -> dict[str, Any]:
    if av.type == "S":
        return {"t": "S", "s": av.value}
    if av.type == "N":
        return {"t": "N", "n": av.value}
    if av.type == "B":
        return {"t": "B", "b": base64.b64encode(av.value).decode("ascii")}
    if av.type == "BOOL":
        if av.value is None:
            return {"t": "NULL", "null": True}
        return {"t": "BOOL", "bool": av.value}
    if av.type == "NULL":
        return {"t": "NULL", "null": True}
    if av.type == "SS":
        return {"t": "SS", "ss": list(av.value)}
    if av.type == "NS":
        return {"t": "NS", "ns": list(av.value)}
    if av.type == "BS":
        return {"t": "BS", "bs": [base64.b64encode(v).decode("ascii") for v in av.value]}
    if av.type == "L":
        return {"t": "L", "l": [marshal_attribute_value_json(v) for v in av.value]}
    if av.type == "M":
        return {"t": "M", "m": {k: marshal_attribute_value_json(av.value[k]) for k in sorted(av.value)}}
    raise ValidationError(f"marshal: unsupported attribute value type: {av.type}")


def unmarshal_attribute_value_json(enc: Any) -> AttributeValue:
    if not isinstance(enc, dict) or "t" not in enc:
        raise ValidationError("unmarshal: encoded attribute value must be a map with t")

    kind = enc.get("t")
    if kind in {"S", "N"}:
        value = enc.get(str(kind).lower())
        if not isinstance(value, str):
            raise ValidationError(f"unmarshal: {kind} must be a string")
        return AttributeValue(kind, value)
    if kind == "B":
        value = enc.get("b")
        if not isinstance(value, str):
            raise ValidationError("unmarshal: B must be base64 string")
        try:
            return AttributeValue("B", base64.b64decode(value, validate=True))
        except ValueError as err:
            raise ValidationError("unmarshal: invalid base64 in B") from err
    if kind == "BOOL":
        value = enc.get("bool")
        if not isinstance(value, bool):
            raise ValidationError("unmarshal: BOOL must be bool")
        return AttributeValue("BOOL", value)
    if kind == "NULL":
        if enc.get("null") is not True:
            raise ValidationError("unmarshal: NULL must be true")
        return AttributeValue.null()
    if kind in {"SS", "NS"}:
        value = enc.get(str(kind).lower())
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"unmarshal: {kind} must be list[str]")
        return AttributeValue(kind, tuple(value))
    if kind == "BS":
        value = enc.get("bs")
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError("unmarshal: BS must be list[str]")
        try:
            return AttributeValue("BS", tuple(base64.b64decode(v, validate=True) for v in value))
        except ValueError as err:
            raise ValidationError("unmarshal: invalid base64 in BS") from err
    if kind == "L":
        value = enc.get("l")
        if not isinstance(value, list):
            raise ValidationError("unmarshal: L must be list")
        return AttributeValue("L", tuple(unmarshal_attribute_value_json(v) for v in value))
    if kind == "M":
        value = enc.get("m")
        if not isinstance(value, dict):
            raise ValidationError("unmarshal: M must be map")
        return AttributeValue("M", {k: unmarshal_attribute_value_json(value[k]) for k in sorted(value)})

    raise ValidationError(f"unmarshal: unsupported encoded attribute value type: {kind}")
