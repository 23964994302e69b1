from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .attribute_value import AttributeValue
from .converter import ValueKind, to_attribute_value
from .errors import ArgumentError


class ParameterGenerator:
    """Issues ``:p0``, ``:p1``, ... for one request-building session.

    Safe to share between threads: concurrent callers never receive the same
    name, though the order in which they receive them is unspecified.
    """

    def __init__(self) -> None:
        self._counter = 0
        self._lock = threading.Lock()

    def generate_parameter_name(self) -> str:
        with self._lock:
            n = self._counter
            self._counter += 1
        return f":p{n}"

    def reset(self) -> None:
        with self._lock:
            self._counter = 0


@dataclass(frozen=True)
class ParameterMetadata:
    parameter_name: str
    value: Any = None
    requires_encryption: bool = False
    property_name: str | None = None
    attribute_name: str | None = None

    @property
    def field_name(self) -> str:
        return self.property_name or self.attribute_name or self.parameter_name


def _check_placeholder(name: str, prefix: str) -> None:
    if not isinstance(name, str) or len(name) < 2 or not name.startswith(prefix):
        raise ArgumentError(f"placeholder must start with '{prefix}': {name!r}")


def convert_formatted(value: Any, format: str | None = None) -> AttributeValue:
    av = to_attribute_value(value, format)
    if av is None:
        raise ArgumentError(
            f"Cannot use empty collection of type {type(value).__name__} in a format string parameter. "
            "DynamoDB does not support empty Maps, Sets, or Lists."
        )
    return av


class AttributeValues:
    """The ``:name`` -> value table of one builder."""

    def __init__(self, generator: ParameterGenerator | None = None) -> None:
        self.generator = generator or ParameterGenerator()
        self._values: dict[str, AttributeValue] = {}
        self._metadata: list[ParameterMetadata] = []

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def get(self, name: str) -> AttributeValue | None:
        return self._values.get(name)

    @property
    def values(self) -> dict[str, AttributeValue]:
        return dict(self._values)

    @property
    def metadata(self) -> tuple[ParameterMetadata, ...]:
        return tuple(self._metadata)

    def _put(self, name: str, av: AttributeValue) -> None:
        if name in self._values:
            raise ArgumentError(f"duplicate expression attribute value: {name}")
        self._values[name] = av

    def with_value(
        self,
        name: str,
        value: Any,
        conditional_use: bool = True,
        *,
        kind: ValueKind | None = None,
    ) -> None:
        """Store ``value`` under ``name``.

        Nothing is stored when ``conditional_use`` is false, for an empty
        collection, or for ``None`` without a ``kind``.
        """

        if not conditional_use:
            return
        _check_placeholder(name, ":")
        if value is None and kind in (None, "string", "binary"):
            return
        av = to_attribute_value(value, kind=kind)
        if av is not None:
            self._put(name, av)

    def with_values(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.with_value(name, value)

    def add_formatted_value(self, value: Any, format: str | None = None) -> str:
        av = convert_formatted(value, format)
        return self.register(av)

    def register(self, av: AttributeValue) -> str:
        name = self.generator.generate_parameter_name()
        self._put(name, av)
        return name

    def register_all(self, avs: Sequence[AttributeValue]) -> list[str]:
        """Register every value or none of them."""

        names = [self.generator.generate_parameter_name() for _ in avs]
        taken = [name for name in names if name in self._values]
        if taken:
            raise ArgumentError(f"duplicate expression attribute value: {', '.join(taken)}")
        self._values.update(zip(names, avs, strict=True))
        return names

    def add_encrypted_value(
        self,
        name: str,
        value: Any,
        *,
        field_name: str,
        attribute_name: str | None = None,
    ) -> None:
        _check_placeholder(name, ":")
        av = to_attribute_value(value)
        if av is None:
            return
        self._put(name, av)
        self._metadata.append(
            ParameterMetadata(
                parameter_name=name,
                value=value,
                requires_encryption=True,
                property_name=field_name,
                attribute_name=attribute_name,
            )
        )


class AttributeNames:
    """The ``#alias`` -> attribute name table of one builder."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, alias: object) -> bool:
        return alias in self._names

    @property
    def values(self) -> dict[str, str]:
        return dict(self._names)

    def with_attribute(self, alias: str, name: str) -> None:
        _check_placeholder(alias, "#")
        if not name:
            raise ArgumentError(f"attribute name for {alias} must be non-empty")
        existing = self._names.get(alias)
        if existing is not None and existing != name:
            raise ArgumentError(f"{alias} is already mapped to {existing!r}")
        self._names[alias] = name

    def with_attributes(self, names: Mapping[str, str]) -> None:
        for alias, name in names.items():
            self.with_attribute(alias, name)
