from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal

import boto3
import pytest

from fluentdb_py import (
    ConditionCheckBuilder,
    ConditionFailedError,
    DeleteItemRequestBuilder,
    GetItemRequestBuilder,
    PutItemRequestBuilder,
    QueryRequestBuilder,
    UpdateItemRequestBuilder,
    batch_get,
    batch_write,
    transact_write,
)

pytestmark = pytest.mark.integration


@dataclass(frozen=True)
class Note:
    pk: str
    sk: str
    value: int
    price: Decimal | None = None


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("FLUENTDB_DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


@pytest.fixture
def table() -> Iterator[tuple[object, str]]:
    client = _client()
    table_name = f"fluentdb_py_it_{uuid.uuid4().hex[:12]}"
    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)
    try:
        yield client, table_name
    finally:
        client.delete_table(TableName=table_name)


def test_crud_round_trip_and_conditions(table: tuple[object, str]) -> None:
    client, name = table

    put = PutItemRequestBuilder(client).for_table(name).with_item(Note(pk="A", sk="B", value=1))
    put.where("attribute_not_exists(pk)").execute()
    with pytest.raises(ConditionFailedError):
        PutItemRequestBuilder(client).for_table(name).with_item(Note(pk="A", sk="B", value=1)).where(
            "attribute_not_exists(pk)"
        ).execute()

    updated = (
        UpdateItemRequestBuilder(client)
        .for_table(name)
        .with_key("pk", "A", "sk", "B")
        .set("SET price = {0:F2}, #v = #v + {1}", Decimal("9.5"), 2)
        .with_attribute("#v", "value")
        .where("#v = {0}", 1)
        .return_all_new_values()
        .execute()
    )
    assert updated.to(Note) == Note(pk="A", sk="B", value=3, price=Decimal("9.50"))

    got = GetItemRequestBuilder(client).for_table(name).with_key("pk", "A", "sk", "B").using_consistent_read().execute()
    assert got.to(Note) == Note(pk="A", sk="B", value=3, price=Decimal("9.50"))

    DeleteItemRequestBuilder(client).for_table(name).with_key("pk", "A", "sk", "B").execute()
    assert GetItemRequestBuilder(client).for_table(name).with_key("pk", "A", "sk", "B").execute().item is None


def test_batch_transaction_and_query_paging(table: tuple[object, str]) -> None:
    client, name = table

    writes = batch_write()
    for i in range(5):
        writes.add(PutItemRequestBuilder(client).for_table(name).with_item({"pk": "P", "sk": f"{i:03d}", "value": i}))
    assert writes.execute().has_unprocessed_items is False

    (
        transact_write()
        .add(ConditionCheckBuilder(client).for_table(name).with_key("pk", "P", "sk", "000").where("attribute_exists(pk)"))
        .add(UpdateItemRequestBuilder(client).for_table(name).with_key("pk", "P", "sk", "001").set("SET #v = {0}", 42).with_attribute("#v", "value"))
        .execute()
    )

    first, missing = (
        batch_get()
        .add(GetItemRequestBuilder(client).for_table(name).with_key("pk", "P", "sk", "001"))
        .add(GetItemRequestBuilder(client).for_table(name).with_key("pk", "P", "sk", "999"))
        .execute_and_map(Note, Note)
    )
    assert first == Note(pk="P", sk="001", value=42)
    assert missing is None

    seen: list[str] = []
    page = QueryRequestBuilder(client).for_table(name).where("pk = {0}", "P").take(2).execute()
    seen.extend(n.sk for n in page.to_list(Note))
    while page.next_cursor:
        page = (
            QueryRequestBuilder(client)
            .for_table(name)
            .where("pk = {0}", "P")
            .take(2)
            .start_from_cursor(page.next_cursor)
            .execute()
        )
        seen.extend(n.sk for n in page.to_list(Note))
    assert seen == ["000", "001", "002", "003", "004"]
