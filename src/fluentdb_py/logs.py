from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Any

import structlog

from .attribute_value import AttributeValue

REDACTED = "[REDACTED]"

_logger = structlog.get_logger("fluentdb_py")


def get_logger(component: str) -> Any:
    return _logger.bind(component=component)


def redact_item(
    item: Mapping[str, Any] | None,
    sensitive_fields: Collection[str] | None,
) -> Mapping[str, Any] | None:
    """Copy of ``item`` with sensitive values replaced; field names are kept."""

    if not item or not sensitive_fields:
        return item
    return {
        name: AttributeValue.string(REDACTED) if name in sensitive_fields else value
        for name, value in item.items()
    }


def redact_value(value: str, field_name: str, sensitive_fields: Collection[str] | None) -> str:
    if sensitive_fields and field_name in sensitive_fields:
        return REDACTED
    return value


def describe_item(item: Mapping[str, AttributeValue] | None, sensitive_fields: Collection[str] | None) -> dict[str, str]:
    """Log-safe view of an item: attribute name to type tag, or the redaction marker."""

    sensitive = sensitive_fields or ()
    return {
        name: REDACTED if name in sensitive else (av.type if isinstance(av, AttributeValue) else type(av).__name__)
        for name, av in (item or {}).items()
    }
