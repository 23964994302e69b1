from __future__ import annotations

import dataclasses
import enum
import re
import types
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from collections.abc import Set as AbstractSet
from datetime import UTC, date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Union, cast, get_args, get_origin, get_type_hints

from boto3.dynamodb.types import Binary, TypeDeserializer

from .attribute_value import AttributeValue
from .errors import FormatError, MappingError, ValidationError
from .formatting import format_datetime, format_number, format_uuid

type ValueKind = Literal["string", "bool", "number", "binary"]

_deserializer = TypeDeserializer()

_NUMERIC = (int, float, Decimal)
_BINARY = (bytes, bytearray, memoryview, Binary)

_ROUND_TRIP = re.compile(
    r"^(?P<y>\d{4})-(?P<mo>\d{2})-(?P<d>\d{2})"
    r"(?:[T ](?P<h>\d{2}):(?P<mi>\d{2})(?::(?P<s>\d{2})(?:\.(?P<f>\d{1,7}))?)?)?"
    r"(?P<tz>Z|[+-]\d{2}:?\d{2})?$"
)


def _reject_format(format: str | None, type_name: str) -> None:
    if format:
        raise FormatError(
            f"Type {type_name} does not support format strings. Format '{format}' is not valid for this type."
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMERIC) and not isinstance(value, bool)


def to_attribute_value(value: Any, format: str | None = None, *, kind: ValueKind | None = None) -> AttributeValue | None:
    """Convert a native value to its wire form.

    Returns ``None`` when the value has no wire representation (an empty
    collection); callers omit the attribute in that case. ``kind`` picks the
    representation of ``None``: an unset boolean, an empty number, or NULL.
    """

    if value is None:
        if kind == "bool":
            return AttributeValue.boolean(None)
        if kind == "number":
            return AttributeValue.number("")
        return AttributeValue.null()

    if isinstance(value, AttributeValue):
        _reject_format(format, "AttributeValue")
        return value

    if isinstance(value, bool):
        if format:
            raise FormatError(
                f"Boolean values do not support format strings. Format '{format}' is not valid for boolean type."
            )
        return AttributeValue.boolean(value)

    if isinstance(value, enum.Enum):
        if format:
            raise FormatError(
                "Enum values do not support format strings. "
                f"Format '{format}' is not valid for enum type {type(value).__name__}."
            )
        return AttributeValue.string(value.name)

    if isinstance(value, str):
        if format:
            raise FormatError(
                f"String values do not support format strings. Format '{format}' is not valid for string type."
            )
        return AttributeValue.string(value)

    if _is_number(value):
        return AttributeValue.number(format_number(value, format))

    if isinstance(value, (datetime, date, time)):
        if format and format.lower() == "ttl":
            return to_ttl(value)
        return AttributeValue.string(format_datetime(value, format))

    if isinstance(value, uuid.UUID):
        return AttributeValue.string(format_uuid(value, format))

    if isinstance(value, _BINARY):
        _reject_format(format, type(value).__name__)
        return AttributeValue.binary(bytes(cast(Any, value)))

    if isinstance(value, Mapping):
        _reject_format(format, type(value).__name__)
        return to_map(value)

    if isinstance(value, AbstractSet):
        _reject_format(format, type(value).__name__)
        return to_set(value)

    if isinstance(value, (list, tuple)):
        _reject_format(format, type(value).__name__)
        return to_list(value)

    _reject_format(format, type(value).__name__)
    raise ValidationError(f"unsupported value type for DynamoDB: {type(value).__name__}")


def to_ttl(value: datetime | date | time) -> AttributeValue:
    """Unix epoch seconds, the representation DynamoDB TTL attributes require."""

    if isinstance(value, time):
        raise FormatError("Format 'ttl' is only valid for date and datetime values.")
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=UTC)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return AttributeValue.number(str(int(value.timestamp())))


def to_map(values: Mapping[Any, Any] | None) -> AttributeValue | None:
    if not values:
        return None
    out: dict[str, AttributeValue] = {}
    for key, raw in values.items():
        if not isinstance(key, str):
            raise ValidationError(f"map keys must be strings, got {type(key).__name__}")
        av = to_attribute_value(raw)
        if av is not None:
            out[key] = av
    return AttributeValue.map_(out) if out else None


def to_string_set(values: Iterable[str] | None) -> AttributeValue | None:
    items = sorted(set(values or ()))
    return AttributeValue.string_set(items) if items else None


def to_number_set(values: Iterable[int | float | Decimal] | None) -> AttributeValue | None:
    items = sorted(set(values or ()))
    return AttributeValue.number_set(format_number(v, None) for v in items) if items else None


def to_binary_set(values: Iterable[bytes] | None) -> AttributeValue | None:
    items = sorted({bytes(cast(Any, v)) for v in values or ()})
    return AttributeValue.binary_set(items) if items else None


def to_set(values: AbstractSet[Any] | None) -> AttributeValue | None:
    if not values:
        return None
    if all(isinstance(v, str) for v in values):
        return to_string_set(values)
    if all(_is_number(v) for v in values):
        return to_number_set(values)
    if all(isinstance(v, _BINARY) for v in values):
        return to_binary_set(values)
    raise ValidationError("set elements must all be strings, all numbers, or all binary")


def to_list(values: Sequence[Any] | None, convert: Callable[[Any], AttributeValue | None] | None = None) -> AttributeValue | None:
    if not values:
        return None
    fn = convert or to_attribute_value
    out: list[AttributeValue] = []
    for v in values:
        av = fn(v)
        # positions are preserved; a nested empty collection is stored as NULL
        out.append(av if av is not None else AttributeValue.null())
    return AttributeValue.list_(out)


def to_key_value(value: Any) -> AttributeValue:
    av = to_attribute_value(value)
    if av is None or av.type not in {"S", "N", "B"}:
        raise ValidationError(f"key values must be string, number, or binary, got {type(value).__name__}")
    return av


def to_item(values: Any) -> dict[str, AttributeValue]:
    """Convert a mapping, dataclass instance, or ``to_dynamodb()`` object to an item."""

    if hasattr(values, "to_dynamodb") and not isinstance(values, Mapping):
        raw = values.to_dynamodb()
        return {k: v if isinstance(v, AttributeValue) else AttributeValue.from_dynamodb(v) for k, v in raw.items()}
    if dataclasses.is_dataclass(values) and not isinstance(values, type):
        values = {f.name: getattr(values, f.name) for f in dataclasses.fields(values)}
    if not isinstance(values, Mapping):
        raise ValidationError(f"cannot convert {type(values).__name__} to an item")

    out: dict[str, AttributeValue] = {}
    for name, raw in values.items():
        av = to_attribute_value(raw)
        if av is not None:
            out[str(name)] = av
    return out


# Reads


def is_empty_value(av: AttributeValue) -> bool:
    return av.type == "NULL" or (av.type == "BOOL" and av.value is None) or (av.type == "N" and av.value == "")


def _unwrap_binary(value: Any) -> Any:
    if isinstance(value, Binary):
        return bytes(cast(Any, value))
    if isinstance(value, set):
        return {_unwrap_binary(v) for v in value}
    if isinstance(value, list):
        return [_unwrap_binary(v) for v in value]
    if isinstance(value, dict):
        return {k: _unwrap_binary(v) for k, v in value.items()}
    return value


def _to_native(av: AttributeValue) -> Any:
    if is_empty_value(av):
        return None
    return _unwrap_binary(_deserializer.deserialize(av.to_dynamodb()))


def parse_datetime(text: str) -> datetime:
    m = _ROUND_TRIP.match(text)
    if m is None:
        try:
            return datetime.fromisoformat(text)
        except ValueError as err:
            raise MappingError(f"'{text}' is not a recognised date/time") from err

    fraction = (m.group("f") or "").ljust(7, "0")
    tz_text = m.group("tz")
    tzinfo: timezone | None = None
    if tz_text == "Z":
        tzinfo = UTC
    elif tz_text:
        sign = -1 if tz_text[0] == "-" else 1
        digits = tz_text[1:].replace(":", "")
        tzinfo = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))
    return datetime(
        int(m.group("y")),
        int(m.group("mo")),
        int(m.group("d")),
        int(m.group("h") or 0),
        int(m.group("mi") or 0),
        int(m.group("s") or 0),
        int(fraction[:6]),
        tzinfo,
    )


def _parse_number(text: str) -> int | Decimal:
    try:
        d = Decimal(text)
    except InvalidOperation as err:
        raise MappingError(f"'{text}' is not a number") from err
    if d == d.to_integral_value() and not any(c in text for c in ".eE"):
        return int(d)
    return d


def _scalar(av: AttributeValue, target: type[Any]) -> Any:
    if target is AttributeValue:
        return av
    if issubclass(target, enum.Enum):
        text = str(av.value)
        try:
            return target[text]
        except KeyError:
            try:
                return target(_parse_number(text) if av.type == "N" else text)
            except ValueError as err:
                raise MappingError(f"'{text}' is not a member of {target.__name__}") from err
    if target is bool:
        if av.type != "BOOL":
            raise MappingError(f"cannot read {av.type} as bool")
        return av.value
    if target is str:
        if av.type in {"S", "N"}:
            return av.value
        return str(_to_native(av))
    if target in (int, float, Decimal):
        if av.type not in {"N", "S"}:
            raise MappingError(f"cannot read {av.type} as {target.__name__}")
        try:
            return target(Decimal(av.value)) if target is int else target(av.value)
        except (InvalidOperation, ValueError) as err:
            raise MappingError(f"'{av.value}' is not a valid {target.__name__}") from err
    if target is datetime:
        if av.type == "N":
            return datetime.fromtimestamp(int(Decimal(av.value)), tz=UTC)
        return parse_datetime(str(av.value))
    if target is date:
        return parse_datetime(str(av.value)).date()
    if target is time:
        return time.fromisoformat(str(av.value)[:15])
    if target is uuid.UUID:
        try:
            return uuid.UUID(str(av.value))
        except ValueError as err:
            raise MappingError(f"'{av.value}' is not a UUID") from err
    if target in (bytes, bytearray):
        if av.type != "B":
            raise MappingError(f"cannot read {av.type} as bytes")
        return target(av.value)
    if dataclasses.is_dataclass(target) or hasattr(target, "from_dynamodb"):
        if av.type != "M":
            raise MappingError(f"cannot read {av.type} as {target.__name__}")
        return from_item(av.value, target)
    return _to_native(av)


def _elements(av: AttributeValue) -> Sequence[AttributeValue]:
    if av.type == "L":
        return cast(Sequence[AttributeValue], av.value)
    if av.type in {"SS", "NS", "BS"}:
        tag = av.type[0]
        return [AttributeValue(tag, v) for v in av.value]
    raise MappingError(f"cannot read {av.type} as a collection")


def from_attribute_value(av: AttributeValue | Mapping[str, Any], target_type: Any = None) -> Any:
    if not isinstance(av, AttributeValue):
        av = AttributeValue.from_dynamodb(av)
    if target_type is None or target_type is Any:
        return _to_native(av)

    origin = get_origin(target_type)
    if origin in (Union, types.UnionType):
        if is_empty_value(av):
            return None
        options = [a for a in get_args(target_type) if a is not type(None)]
        return from_attribute_value(av, options[0]) if len(options) == 1 else _to_native(av)

    if is_empty_value(av):
        return None

    if origin in (list, Sequence, tuple):
        args = get_args(target_type)
        inner = args[0] if args else None
        out = [from_attribute_value(e, inner) for e in _elements(av)]
        return tuple(out) if origin is tuple else out
    if origin in (set, frozenset, AbstractSet):
        args = get_args(target_type)
        inner = args[0] if args else None
        items = {from_attribute_value(e, inner) for e in _elements(av)}
        return frozenset(items) if origin is frozenset else items
    if origin in (dict, Mapping):
        if av.type != "M":
            raise MappingError(f"cannot read {av.type} as a map")
        args = get_args(target_type)
        inner = args[1] if len(args) == 2 else None
        return {k: from_attribute_value(v, inner) for k, v in av.value.items()}

    if target_type in (list, tuple, set, frozenset, dict):
        native = _to_native(av)
        return target_type(native)
    if isinstance(target_type, type):
        return _scalar(av, target_type)
    return _to_native(av)


def from_item[T](
    item: Mapping[str, Any] | None,
    item_type: type[T] | Callable[[dict[str, Any]], T] | None = None,
) -> T | dict[str, Any] | None:
    """Map a wire item to ``item_type``.

    Dataclasses are built field by field from their type hints; types with a
    ``from_dynamodb`` classmethod receive the raw attribute values; any other
    callable receives the plain native dict.
    """

    if item is None:
        return None
    values = {
        str(k): v if isinstance(v, AttributeValue) else AttributeValue.from_dynamodb(v) for k, v in item.items()
    }
    if item_type is None or item_type is dict:
        return {k: from_attribute_value(v) for k, v in values.items()}

    name = getattr(item_type, "__name__", repr(item_type))
    try:
        from_dynamodb = getattr(item_type, "from_dynamodb", None)
        if callable(from_dynamodb):
            return cast(T, from_dynamodb(values))
        if isinstance(item_type, type) and dataclasses.is_dataclass(item_type):
            hints = get_type_hints(item_type)
            kwargs: dict[str, Any] = {}
            for f in dataclasses.fields(item_type):
                if not f.init or f.name not in values:
                    continue
                kwargs[f.name] = from_attribute_value(values[f.name], hints.get(f.name))
            return item_type(**kwargs)
        native = {k: from_attribute_value(v) for k, v in values.items()}
        return item_type(native)  # type: ignore[call-arg]
    except MappingError:
        raise
    except (TypeError, ValueError, KeyError) as err:
        raise MappingError(f"Failed to map item to {name}: {err}") from err
