from __future__ import annotations

from collections.abc import Callable

from botocore.exceptions import ClientError

from .errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    TransactionCanceledError,
    ValidationError,
)

_BY_CODE: dict[str, Callable[[str], Exception]] = {
    "ConditionalCheckFailedException": ConditionFailedError,
    "ValidationException": ValidationError,
    "ResourceNotFoundException": NotFoundError,
}


def _error_fields(err: ClientError) -> tuple[str, str]:
    error = err.response.get("Error", {})
    return str(error.get("Code", "")), str(error.get("Message", ""))


def _cancellation_reasons(err: ClientError) -> tuple[str, ...]:
    # one entry per TransactItem, positionally; "None" marks items that did not fail
    return tuple(
        str(reason.get("Code", "None"))
        for reason in err.response.get("CancellationReasons") or []
        if isinstance(reason, dict)
    )


def map_client_error(err: ClientError, *, operation: str | None = None) -> Exception:
    """Translate a botocore error into the library taxonomy; unknown codes become ``AwsError``."""

    code, message = _error_fields(err)
    factory = _BY_CODE.get(code)
    if factory is not None:
        return factory(message)
    return AwsError(
        code=code or "UnknownError",
        message=message or str(err),
        operation=operation or getattr(err, "operation_name", None),
    )


def map_transaction_error(err: ClientError, *, operation: str | None = None) -> Exception:
    code, message = _error_fields(err)
    if code != "TransactionCanceledException":
        return map_client_error(err, operation=operation)

    reason_codes = _cancellation_reasons(err)
    if "ConditionalCheckFailed" in reason_codes:
        return ConditionFailedError(message or "transaction canceled: ConditionalCheckFailed")
    return TransactionCanceledError(message=message or "transaction canceled", reason_codes=reason_codes)
