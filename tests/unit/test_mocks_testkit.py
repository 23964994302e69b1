from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from fluentdb_py import PutItemRequestBuilder
from fluentdb_py.mocks import ANY, FakeDynamoDBClient, FakeKmsClient, client_error
from fluentdb_py.testkit import fixed_rand_bytes


def test_fake_dynamodb_client_records_and_matches_put_item() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", {"TableName": "notes", "Item": ANY})

    PutItemRequestBuilder(client).for_table("notes").with_item({"pk": "A", "value": 1}).execute()

    client.assert_no_pending()
    assert client.calls[0][0] == "put_item"
    assert client.calls[0][1]["Item"]["value"] == {"N": "1"}


def test_fake_dynamodb_client_asserts_pending_calls() -> None:
    client = FakeDynamoDBClient()
    client.expect("query")
    assert client.pending == 1
    with pytest.raises(AssertionError, match="pending expected calls"):
        client.assert_no_pending()


def test_fake_dynamodb_client_rejects_unexpected_calls() -> None:
    client = FakeDynamoDBClient()
    with pytest.raises(AssertionError, match="unexpected call: query"):
        client.query()


def test_fake_dynamodb_client_rejects_wrong_method_order() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan")
    with pytest.raises(AssertionError, match="expected scan, got query"):
        client.query()


@pytest.mark.parametrize(
    ("expected", "req", "match"),
    [
        ({"a": 1}, {"a": 2}, "expected 1"),
        ({"a": 1}, {}, "missing key"),
        ({"a": {"b": 1}}, {"a": "nope"}, "expected dict"),
        ({"a": [1]}, {"a": "nope"}, "expected list"),
        ({"a": [1, 2]}, {"a": [1]}, "expected 2 items"),
        ({"a": [1]}, {"a": [2]}, "expected 1"),
    ],
)
def test_fake_dynamodb_client_strict_matching(expected: dict, req: dict, match: str) -> None:
    client = FakeDynamoDBClient()
    client.expect("query", expected)
    with pytest.raises(AssertionError, match=match):
        client.query(**req)


def test_fake_dynamodb_client_can_inject_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect("transact_get_items", error=RuntimeError("boom"))
    with pytest.raises(RuntimeError, match="boom"):
        client.transact_get_items()


def test_client_error_shape() -> None:
    err = client_error("TransactionCanceledException", "cancelled", CancellationReasons=[{"Code": "None"}])
    assert isinstance(err, ClientError)
    assert err.response["Error"] == {"Code": "TransactionCanceledException", "Message": "cancelled"}
    assert err.response["CancellationReasons"] == [{"Code": "None"}]


def test_fake_kms_client_decrypt_checks_blob() -> None:
    plaintext_key = b"\x01" * 32
    kms = FakeKmsClient(plaintext_key=plaintext_key, ciphertext_blob=b"x")
    assert kms.decrypt(CiphertextBlob=b"x")["Plaintext"] == plaintext_key
    with pytest.raises(ClientError):
        kms.decrypt(CiphertextBlob=b"other")
    assert [c[0] for c in kms.calls] == ["decrypt", "decrypt"]


def test_fixed_rand_bytes_repeats_seed_to_requested_length() -> None:
    rand = fixed_rand_bytes(b"\x01\x02")
    assert rand(0) == b""
    assert rand(1) == b"\x01"
    assert rand(3) == b"\x01\x02\x01"


def test_fixed_rand_bytes_rejects_bad_input() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        fixed_rand_bytes(b"")
    with pytest.raises(ValueError, match=">= 0"):
        fixed_rand_bytes(b"a")(-1)
