from __future__ import annotations

from dataclasses import dataclass

import pytest

from fluentdb_py.context import OperationContext
from fluentdb_py.errors import MappingError
from fluentdb_py.query import decode_cursor
from fluentdb_py.responses import BatchWriteResponse, ItemsResponse, TransactionGetResponse


@dataclass(frozen=True)
class Account:
    pk: str
    balance: int


def _tx_response(*items: dict | None) -> TransactionGetResponse:
    raw = {"Responses": [{"Item": item} if item else {} for item in items]}
    return TransactionGetResponse(raw, OperationContext("TransactGetItems", operation_count=len(items)))


def test_get_item_maps_and_returns_none_for_missing() -> None:
    resp = _tx_response({"pk": {"S": "A"}, "balance": {"N": "5"}}, None)
    assert resp.count == 2
    assert resp.get_item(0, Account) == Account(pk="A", balance=5)
    assert resp.get_item(0) == {"pk": "A", "balance": 5}
    assert resp.get_item(1, Account) is None


def test_index_errors_name_the_size() -> None:
    resp = _tx_response({"pk": {"S": "A"}, "balance": {"N": "5"}})
    with pytest.raises(IndexError, match="Index 1 is out of range. Response contains 1 items."):
        resp.get_item(1)
    with pytest.raises(IndexError):
        resp.get_item(-1)


def test_get_items_range_is_inclusive() -> None:
    resp = _tx_response(
        {"pk": {"S": "A"}, "balance": {"N": "1"}},
        {"pk": {"S": "B"}, "balance": {"N": "2"}},
        {"pk": {"S": "C"}, "balance": {"N": "3"}},
    )
    assert [a.pk for a in resp.get_items_range(1, 2, item_type=Account)] == ["B", "C"]
    assert [a.pk for a in resp.get_items_range(0, 0, item_type=Account)] == ["A"]
    with pytest.raises(IndexError, match="Start index 3"):
        resp.get_items_range(3, 3)
    with pytest.raises(IndexError, match="End index 0 is invalid"):
        resp.get_items_range(1, 0)


def test_mapping_failures_name_the_index_and_type() -> None:
    resp = _tx_response({"pk": {"S": "A"}, "balance": {"S": "lots"}})
    with pytest.raises(MappingError, match="Failed to deserialize item at index 0 to type Account") as excinfo:
        resp.get_item(0, Account)
    assert isinstance(excinfo.value.__cause__, MappingError)


def test_items_response_emits_cursor_for_last_key() -> None:
    raw = {
        "Items": [{"pk": {"S": "A"}, "balance": {"N": "1"}}],
        "Count": 1,
        "LastEvaluatedKey": {"pk": {"S": "A"}},
    }
    page = ItemsResponse(raw, OperationContext.from_response("Scan", raw), index_name="gsi1")
    assert page.has_more is True
    assert page.to_list(Account) == [Account(pk="A", balance=1)]
    cursor = decode_cursor(page.next_cursor or "")
    assert cursor.index == "gsi1"
    assert cursor.sort is None


def test_batch_write_response_unprocessed() -> None:
    ctx = OperationContext("BatchWriteItem")
    assert BatchWriteResponse({"UnprocessedItems": {"t": []}}, ctx).has_unprocessed_items is False
    assert BatchWriteResponse({}, ctx).unprocessed_items == {}
