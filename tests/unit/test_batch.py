from __future__ import annotations

from dataclasses import dataclass

import pytest

from fluentdb_py import (
    ArgumentError,
    CapacityError,
    ClientConsistencyError,
    DeleteItemRequestBuilder,
    GetItemRequestBuilder,
    MissingClientError,
    NoOperationsError,
    PutItemRequestBuilder,
    UpdateItemRequestBuilder,
    ValidationError,
    batch_get,
    batch_write,
)
from fluentdb_py.composer import ComposerState, RequestGroupComposer
from fluentdb_py.mocks import FakeDynamoDBClient


@dataclass(frozen=True)
class User:
    pk: str
    name: str


def _put(client: FakeDynamoDBClient | None, table: str, pk: str) -> PutItemRequestBuilder:
    return PutItemRequestBuilder(client).for_table(table).with_item({"pk": pk, "name": pk.lower()})


def _get(client: FakeDynamoDBClient | None, table: str, pk: str) -> GetItemRequestBuilder:
    return GetItemRequestBuilder(client).for_table(table).with_key("pk", pk)


def test_batch_write_groups_by_table_in_insertion_order() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_write_item",
        {
            "RequestItems": {
                "users": [
                    {"PutRequest": {"Item": {"pk": {"S": "U1"}, "name": {"S": "u1"}}}},
                    {"DeleteRequest": {"Key": {"pk": {"S": "U9"}}}},
                    {"PutRequest": {"Item": {"pk": {"S": "U2"}, "name": {"S": "u2"}}}},
                ],
                "audit": [{"PutRequest": {"Item": {"pk": {"S": "A1"}, "name": {"S": "a1"}}}}],
            },
            "ReturnConsumedCapacity": "TOTAL",
            "ReturnItemCollectionMetrics": "SIZE",
        },
        response={"UnprocessedItems": {}},
    )

    resp = (
        batch_write()
        .add(_put(client, "users", "U1"))
        .add(DeleteItemRequestBuilder(client).for_table("users").with_key("pk", "U9"))
        .add(_put(client, "audit", "A1"))
        .add(_put(client, "users", "U2"))
        .return_consumed_capacity()
        .return_item_collection_metrics()
        .execute()
    )

    assert resp.has_unprocessed_items is False
    assert resp.context.operation_count == 4
    assert resp.context.table_names == ("users", "audit")
    client.assert_no_pending()


def test_batch_write_drops_conditions() -> None:
    composer = batch_write().add(_put(None, "users", "U1").where("attribute_not_exists(pk)"))
    req = composer.to_request()
    assert req == {"RequestItems": {"users": [{"PutRequest": {"Item": {"pk": {"S": "U1"}, "name": {"S": "u1"}}}}]}}


def test_batch_write_reports_unprocessed_items() -> None:
    client = FakeDynamoDBClient()
    leftover = {"users": [{"PutRequest": {"Item": {"pk": {"S": "U1"}}}}]}
    client.expect("batch_write_item", response={"UnprocessedItems": leftover})

    resp = batch_write().add(_put(client, "users", "U1")).execute()
    assert resp.has_unprocessed_items is True
    assert resp.unprocessed_items == leftover


def test_batch_write_rejects_updates() -> None:
    update = UpdateItemRequestBuilder().for_table("t").with_key("pk", "A").set("SET a = {0}", 1)
    with pytest.raises(ValidationError, match="Update operations cannot be added to BatchWriteItem"):
        batch_write().add(update)


def test_batch_write_capacity_is_25() -> None:
    client = FakeDynamoDBClient()
    composer = batch_write()
    for i in range(26):
        composer.add(_put(client, "users", f"U{i}"))

    with pytest.raises(CapacityError) as excinfo:
        composer.execute()
    message = str(excinfo.value)
    assert "26" in message
    assert "25" in message
    assert "splitting your operations into multiple batches" in message
    assert client.calls == []
    assert composer.state is ComposerState.FAILED


def test_batch_get_capacity_is_100() -> None:
    client = FakeDynamoDBClient()
    composer = batch_get()
    for i in range(101):
        composer.add(_get(client, "users", f"U{i}"))

    with pytest.raises(CapacityError, match="Batch contains 101 operations, but DynamoDB supports a maximum of 100"):
        composer.execute()


def test_empty_composer_fails_with_no_operations() -> None:
    with pytest.raises(NoOperationsError, match="Add at least one operation using add"):
        batch_write().execute(FakeDynamoDBClient())


def test_missing_client_names_both_remedies() -> None:
    composer = batch_write().add(_put(None, "users", "U1"))
    with pytest.raises(MissingClientError) as excinfo:
        composer.execute()
    assert "pass a client to execute()" in str(excinfo.value)
    assert "with_client()" in str(excinfo.value)


def test_no_operations_is_checked_before_client() -> None:
    with pytest.raises(NoOperationsError):
        batch_get().execute()


def test_mixed_clients_fail_on_add_and_poison_the_composer() -> None:
    composer = batch_write().add(_put(FakeDynamoDBClient(), "users", "U1"))
    composer.add(_put(None, "users", "U2"))

    with pytest.raises(ClientConsistencyError, match="same DynamoDB client instance"):
        composer.add(_put(FakeDynamoDBClient(), "users", "U3"))

    with pytest.raises(ValidationError, match="cannot be reused"):
        composer.add(_put(None, "users", "U4"))


def test_client_precedence() -> None:
    inferred = FakeDynamoDBClient()
    explicit = FakeDynamoDBClient()
    direct = FakeDynamoDBClient()
    direct.expect("batch_write_item", response={})
    explicit.expect("batch_write_item", response={})

    composer = batch_write().add(_put(inferred, "users", "U1")).with_client(explicit)
    composer.execute(direct)
    composer.execute()

    direct.assert_no_pending()
    explicit.assert_no_pending()
    assert inferred.calls == []


def test_batch_get_uses_first_get_settings_per_table_and_orders_results() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_get_item",
        {
            "RequestItems": {
                "users": {
                    "Keys": [{"pk": {"S": "U1"}}, {"pk": {"S": "U2"}}, {"pk": {"S": "U3"}}],
                    "ProjectionExpression": "pk, #n",
                    "ExpressionAttributeNames": {"#n": "name"},
                    "ConsistentRead": True,
                },
            }
        },
        response={
            "Responses": {
                "users": [
                    {"pk": {"S": "U3"}, "name": {"S": "three"}},
                    {"pk": {"S": "U1"}, "name": {"S": "one"}},
                ]
            },
            "UnprocessedKeys": {},
        },
    )

    composer = (
        batch_get()
        .add(_get(client, "users", "U1").with_projection("pk, #n").with_attribute("#n", "name").using_consistent_read())
        .add(_get(client, "users", "U2").with_projection("ignored"))
        .add(_get(client, "users", "U3"))
    )
    resp = composer.execute()

    assert resp.count == 3
    assert resp.get_item(0, User) == User(pk="U1", name="one")
    assert resp.get_item(1, User) is None
    assert resp.get_items(2, 0, item_type=User) == [User(pk="U3", name="three"), User(pk="U1", name="one")]
    assert resp.get_items_range(0, 1, item_type=User) == [User(pk="U1", name="one"), None]
    with pytest.raises(IndexError, match="Index 3 is out of range. Response contains 3 items."):
        resp.get_item(3)


def test_batch_get_execute_and_map() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_get_item",
        response={
            "Responses": {
                "users": [{"pk": {"S": "U1"}, "name": {"S": "one"}}],
                "groups": [{"pk": {"S": "G1"}, "title": {"S": "admins"}}],
            }
        },
    )

    user, group, missing = (
        batch_get()
        .add(_get(client, "users", "U1"))
        .add(_get(client, "groups", "G1"))
        .add(_get(client, "users", "U404"))
        .execute_and_map(User, dict, User)
    )
    assert user == User(pk="U1", name="one")
    assert group == {"pk": "G1", "title": "admins"}
    assert missing is None


def test_execute_and_map_arity() -> None:
    composer = batch_get().add(_get(FakeDynamoDBClient(), "users", "U1"))
    with pytest.raises(ArgumentError):
        composer.execute_and_map()
    with pytest.raises(ArgumentError):
        composer.execute_and_map(*([User] * 9))


def test_composer_base_is_abstract() -> None:
    with pytest.raises(TypeError):
        RequestGroupComposer()  # type: ignore[abstract]
