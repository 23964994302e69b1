from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .attribute_value import AttributeValue
from .errors import ArgumentError, FluentDbError, FormatError
from .parameters import AttributeValues, convert_formatted

_ANY_BRACES = re.compile(r"\{[^}]*\}")
_PLACEHOLDER = re.compile(r"\{(-?\d+)(?::([^}]+))?\}")


@dataclass(frozen=True)
class FormattedExpression:
    expression: str
    parameters: dict[str, AttributeValue] = field(default_factory=dict)


def _validate(template: str, args: Sequence[Any]) -> list[re.Match[str]]:
    if template.count("{") != template.count("}"):
        raise FormatError("Format string contains unmatched braces. Each '{' must have a corresponding '}'.")

    invalid = [m.group(0) for m in _ANY_BRACES.finditer(template) if not _PLACEHOLDER.fullmatch(m.group(0))]
    matches = list(_PLACEHOLDER.finditer(template))
    invalid.extend(m.group(0) for m in matches if int(m.group(1)) < 0)
    if invalid:
        raise FormatError(
            f"Format string contains invalid parameter indices: {', '.join(invalid)}. "
            "Parameter indices must be non-negative integers."
        )

    if matches:
        max_index = max(int(m.group(1)) for m in matches)
        if max_index >= len(args):
            raise ArgumentError(
                f"Format string references parameter index {max_index} but only {len(args)} arguments "
                "were provided. Ensure you have enough arguments for all parameter placeholders."
            )
    return matches


def _convert(index: int, value: Any, spec: str | None) -> AttributeValue:
    try:
        return convert_formatted(value, spec)
    except FormatError as err:
        if spec:
            raise FormatError(f"Invalid format specifier '{spec}' for parameter at index {index}. {err}") from err
        raise
    except FluentDbError:
        raise
    except (TypeError, ValueError, ArithmeticError) as err:
        raise FormatError(f"Failed to format parameter {index} with format specifier '{spec}': {err}") from err


def format_expression(template: str, args: Sequence[Any], values: AttributeValues) -> FormattedExpression:
    """Replace ``{index}`` / ``{index:format}`` tokens with generated ``:pN`` names.

    Every token gets its own parameter, even when an index repeats. Tokens
    such as ``:pk`` that are already named pass through untouched. All
    arguments are converted before any name is registered, so a failure
    leaves ``values`` as it was.
    """

    if not template:
        raise ArgumentError("Format string cannot be null or empty.")
    if args is None:
        raise ArgumentError("args cannot be None")

    matches = _validate(template, args)
    if not matches:
        return FormattedExpression(template)

    converted = [
        _convert(int(m.group(1)), args[int(m.group(1))], m.group(2)) for m in matches
    ]

    names = values.register_all(converted)
    parameters = dict(zip(names, converted, strict=True))

    pieces: list[str] = []
    last = 0
    for m, name in zip(matches, names, strict=True):
        pieces.append(template[last : m.start()])
        pieces.append(name)
        last = m.end()
    pieces.append(template[last:])
    return FormattedExpression("".join(pieces), parameters)
