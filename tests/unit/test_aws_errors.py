from __future__ import annotations

import pytest

from fluentdb_py.aws_errors import map_client_error, map_transaction_error
from fluentdb_py.errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    TransactionCanceledError,
    ValidationError,
)
from fluentdb_py.mocks import client_error


@pytest.mark.parametrize(
    ("code", "error"),
    [
        ("ConditionalCheckFailedException", ConditionFailedError),
        ("ValidationException", ValidationError),
        ("ResourceNotFoundException", NotFoundError),
    ],
)
def test_map_client_error_known_codes(code: str, error: type[Exception]) -> None:
    mapped = map_client_error(client_error(code, "msg"))
    assert isinstance(mapped, error)
    assert str(mapped) == "msg"


def test_map_client_error_other_codes_keep_operation() -> None:
    mapped = map_client_error(client_error("ThrottlingException", "slow down"), operation="put_item")
    assert isinstance(mapped, AwsError)
    assert mapped.code == "ThrottlingException"
    assert mapped.operation == "put_item"
    assert str(mapped) == "put_item failed: ThrottlingException: slow down"


def test_map_transaction_error_reasons() -> None:
    mapped = map_transaction_error(
        client_error(
            "TransactionCanceledException",
            "cancelled",
            CancellationReasons=[{"Code": "None"}, {"Code": "ItemCollectionSizeLimitExceeded"}],
        )
    )
    assert isinstance(mapped, TransactionCanceledError)
    assert mapped.reason_codes == ("None", "ItemCollectionSizeLimitExceeded")


def test_map_transaction_error_condition_failure_wins() -> None:
    mapped = map_transaction_error(
        client_error(
            "TransactionCanceledException",
            "",
            CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
        )
    )
    assert isinstance(mapped, ConditionFailedError)
    assert "ConditionalCheckFailed" in str(mapped)


def test_map_transaction_error_falls_back_to_client_mapping() -> None:
    assert isinstance(map_transaction_error(client_error("ValidationException", "bad")), ValidationError)
