from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .attribute_value import AttributeValue, from_dynamodb_map
from .context import OperationContext
from .converter import from_item
from .errors import MappingError
from .query import encode_cursor

type ItemType = type[Any] | Callable[[dict[str, Any]], Any] | None


class _PositionalItems:
    """Index-based access to the items of a multi-item response."""

    _items: list[dict[str, AttributeValue] | None]

    def __len__(self) -> int:
        return len(self._items)

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[dict[str, AttributeValue] | None]:
        return list(self._items)

    def get_item(self, index: int, item_type: ItemType = None) -> Any:
        if index < 0 or index >= len(self._items):
            raise IndexError(f"Index {index} is out of range. Response contains {len(self._items)} items.")
        item = self._items[index]
        if not item:
            return None
        try:
            return from_item(item, item_type)
        except MappingError as err:
            name = getattr(item_type, "__name__", "dict")
            raise MappingError(f"Failed to deserialize item at index {index} to type {name}: {err}") from err

    def get_items(self, *indices: int, item_type: ItemType = None) -> list[Any]:
        return [self.get_item(i, item_type) for i in indices]

    def get_items_range(self, start: int, end: int, item_type: ItemType = None) -> list[Any]:
        """Items ``start`` through ``end``, both inclusive."""

        n = len(self._items)
        if start < 0 or start >= n:
            raise IndexError(f"Start index {start} is out of range. Response contains {n} items.")
        if end < start or end >= n:
            raise IndexError(f"End index {end} is invalid. Must be >= {start} and < {n}.")
        return [self.get_item(i, item_type) for i in range(start, end + 1)]


@dataclass(frozen=True)
class ItemResponse:
    """Result of a single-item get, put, update, or delete."""

    item: dict[str, AttributeValue] | None
    context: OperationContext
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def to(self, item_type: ItemType = None) -> Any:
        return from_item(self.item, item_type)


class ItemsResponse(_PositionalItems):
    """One page of query or scan results."""

    def __init__(
        self,
        raw: Mapping[str, Any],
        context: OperationContext,
        *,
        index_name: str | None = None,
        scan_forward: bool = True,
    ) -> None:
        self.raw = raw
        self.context = context
        self._items = [from_dynamodb_map(item) for item in raw.get("Items") or []]
        self.last_evaluated_key = context.last_evaluated_key
        self.next_cursor: str | None = None
        if self.last_evaluated_key:
            self.next_cursor = encode_cursor(
                self.last_evaluated_key,
                index=index_name,
                sort=None if scan_forward else "DESC",
            )

    @property
    def has_more(self) -> bool:
        return self.last_evaluated_key is not None

    def to_list(self, item_type: ItemType = None) -> list[Any]:
        return [self.get_item(i, item_type) for i in range(len(self._items))]


class BatchWriteResponse:
    def __init__(self, raw: Mapping[str, Any], context: OperationContext) -> None:
        self.raw = raw
        self.context = context
        self.unprocessed_items: dict[str, list[dict[str, Any]]] = dict(raw.get("UnprocessedItems") or {})

    @property
    def has_unprocessed_items(self) -> bool:
        return any(self.unprocessed_items.values())


def _keys_match(item: Mapping[str, Any], key: Mapping[str, Any]) -> bool:
    for name, value in key.items():
        if item.get(name) != value:
            return False
    return True


class BatchGetResponse(_PositionalItems):
    """Batch-get results re-ordered to match the order gets were added.

    DynamoDB returns each table's items in no particular order, so results
    are matched back to requests by key.
    """

    def __init__(
        self,
        raw: Mapping[str, Any],
        context: OperationContext,
        *,
        table_order: Sequence[str],
        requested_keys: Sequence[Mapping[str, Any]],
    ) -> None:
        self.raw = raw
        self.context = context
        self.unprocessed_keys: dict[str, Any] = dict(raw.get("UnprocessedKeys") or {})
        responses: Mapping[str, list[dict[str, Any]]] = raw.get("Responses") or {}

        self._items = []
        for table_name, key in zip(table_order, requested_keys, strict=True):
            match = next(
                (item for item in responses.get(table_name, []) if _keys_match(item, key)),
                None,
            )
            self._items.append(from_dynamodb_map(match) if match is not None else None)

    @property
    def has_unprocessed_keys(self) -> bool:
        return bool(self.unprocessed_keys)


class TransactionWriteResponse:
    def __init__(self, raw: Mapping[str, Any], context: OperationContext) -> None:
        self.raw = raw
        self.context = context


class TransactionGetResponse(_PositionalItems):
    """Transaction-get results, in the order the gets were added."""

    def __init__(self, raw: Mapping[str, Any], context: OperationContext) -> None:
        self.raw = raw
        self.context = context
        self._items = []
        for response in raw.get("Responses") or []:
            item = response.get("Item") if isinstance(response, Mapping) else None
            self._items.append(from_dynamodb_map(item) if item else None)
