from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from decimal import Decimal

import boto3

from fluentdb_py import (
    GetItemRequestBuilder,
    PutItemRequestBuilder,
    QueryRequestBuilder,
    UpdateItemRequestBuilder,
    batch_get,
    transact_write,
)


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


def main() -> None:
    client = _client()
    table_name = f"fluentdb_py_example_{uuid.uuid4().hex[:12]}"

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
        for sk, value in (("001", 1), ("010", 10), ("100", 100)):
            PutItemRequestBuilder(client).for_table(table_name).with_item(Note(pk="A", sk=sk, value=value)).execute()

        (
            UpdateItemRequestBuilder(client)
            .for_table(table_name)
            .with_key("pk", "A", "sk", "010")
            .set("SET price = {0:F2}, #v = #v + {1}", Decimal("19.999"), 5)
            .with_attribute("#v", "value")
            .where("attribute_exists(pk)")
            .execute()
        )

        got = GetItemRequestBuilder(client).for_table(table_name).with_key("pk", "A", "sk", "010").execute()
        print("get:", got.to(Note))

        page = (
            QueryRequestBuilder(client)
            .for_table(table_name)
            .where("pk = {0} AND begins_with(sk, {1})", "A", "0")
            .execute()
        )
        print("query begins_with('0'):", page.to_list(Note))

        (
            transact_write()
            .add(UpdateItemRequestBuilder(client).for_table(table_name).with_key("pk", "A", "sk", "001").set("SET #v = {0}", 2).with_attribute("#v", "value"))
            .add(PutItemRequestBuilder(client).for_table(table_name).with_item({"pk": "B", "sk": "001", "value": 7}))
            .execute()
        )

        first, missing = (
            batch_get()
            .add(GetItemRequestBuilder(client).for_table(table_name).with_key("pk", "A", "sk", "001"))
            .add(GetItemRequestBuilder(client).for_table(table_name).with_key("pk", "Z", "sk", "999"))
            .execute_and_map(Note, Note)
        )
        print("batch get:", first, missing)
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
