from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Self

from .attribute_value import AttributeValue, to_dynamodb_map
from .builders import HasAttributeNames, HasAttributeValues, HasConsumedCapacity, RequestBuilder
from .context import OperationContext
from .converter import to_key_value
from .errors import ArgumentError, ValidationError
from .query import decode_cursor
from .responses import ItemsResponse

_SELECT_MODES = frozenset({"ALL_ATTRIBUTES", "ALL_PROJECTED_ATTRIBUTES", "SPECIFIC_ATTRIBUTES", "COUNT"})


class _PagedReadBuilder(HasAttributeNames, HasAttributeValues, HasConsumedCapacity, RequestBuilder):
    _operation_type: ClassVar[str]
    _method: ClassVar[str]

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._index_name: str | None = None
        self._filter: str | None = None
        self._projection: str | None = None
        self._limit: int | None = None
        self._consistent_read = False
        self._select: str | None = None
        self._start_key: dict[str, AttributeValue] | None = None
        self._scan_forward = True

    def using_index(self, index_name: str) -> Self:
        if not index_name:
            raise ArgumentError("index name must be non-empty")
        self._index_name = index_name
        return self

    def with_filter(self, expression: str, *args: Any) -> Self:
        self._filter = self._format(expression, args)
        return self

    def with_projection(self, expression: str) -> Self:
        if not expression:
            raise ArgumentError("projection expression must be non-empty")
        self._projection = expression
        return self

    def take(self, limit: int) -> Self:
        if limit <= 0:
            raise ArgumentError("limit must be positive")
        self._limit = limit
        return self

    def using_consistent_read(self, consistent: bool = True) -> Self:
        self._consistent_read = consistent
        return self

    def select(self, mode: str) -> Self:
        if mode not in _SELECT_MODES:
            raise ArgumentError(f"invalid Select: {mode}")
        self._select = mode
        return self

    def count(self) -> Self:
        return self.select("COUNT")

    def start_at(self, exclusive_start_key: Mapping[str, Any] | None) -> Self:
        if not exclusive_start_key:
            self._start_key = None
            return self
        self._start_key = {
            name: value if isinstance(value, AttributeValue) else to_key_value(value)
            for name, value in exclusive_start_key.items()
        }
        return self

    def start_from_cursor(self, cursor: str | None) -> Self:
        """Resume from a ``next_cursor`` of an earlier page; empty means start over."""

        if not cursor:
            self._start_key = None
            return self
        decoded = decode_cursor(cursor)
        if decoded.index and self._index_name and decoded.index != self._index_name:
            raise ValidationError(f"cursor was issued for index {decoded.index}, not {self._index_name}")
        if decoded.index:
            self._index_name = decoded.index
        if decoded.sort == "DESC":
            self._scan_forward = False
        self._start_key = decoded.last_key
        return self

    def _base_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._require_table()}
        if self._index_name:
            req["IndexName"] = self._index_name
        if self._filter:
            req["FilterExpression"] = self._filter
        if self._projection:
            req["ProjectionExpression"] = self._projection
        if self._limit is not None:
            req["Limit"] = self._limit
        if self._consistent_read:
            req["ConsistentRead"] = True
        if self._select:
            req["Select"] = self._select
        if self._start_key:
            req["ExclusiveStartKey"] = to_dynamodb_map(self._start_key)
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        return req

    def _finish_request(self, req: dict[str, Any]) -> dict[str, Any]:
        names = self._names.values
        values = self._values.values
        if names:
            req["ExpressionAttributeNames"] = names
        if values:
            req["ExpressionAttributeValues"] = to_dynamodb_map(values)
        return req

    def to_request(self) -> dict[str, Any]:
        return self._finish_request(self._base_request())

    def execute(self, client: Any | None = None) -> ItemsResponse:
        resolved = self._resolve_client(client)
        req = self.to_request()
        resp = self._send(resolved, self._method, req)
        context = OperationContext.from_response(
            self._operation_type,
            resp,
            table_names=(req["TableName"],),
            index_name=self._index_name,
        )
        return ItemsResponse(resp, context, index_name=self._index_name, scan_forward=self._scan_forward)


class QueryRequestBuilder(_PagedReadBuilder):
    _component = "query"
    _operation_type = "Query"
    _method = "query"

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._key_condition: str | None = None

    def where(self, key_condition: str, *args: Any) -> Self:
        """Set the key condition, e.g. ``where("pk = {0} AND begins_with(sk, {1})", pk, prefix)``."""

        self._key_condition = self._format(key_condition, args)
        return self

    def order_ascending(self) -> Self:
        self._scan_forward = True
        return self

    def order_descending(self) -> Self:
        self._scan_forward = False
        return self

    def to_request(self) -> dict[str, Any]:
        req = self._base_request()
        if not self._key_condition:
            raise ValidationError("key condition is required; call where()")
        req["KeyConditionExpression"] = self._key_condition
        if not self._scan_forward:
            req["ScanIndexForward"] = False
        return self._finish_request(req)


class ScanRequestBuilder(_PagedReadBuilder):
    _component = "scan"
    _operation_type = "Scan"
    _method = "scan"

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._segment: int | None = None
        self._total_segments: int | None = None

    def with_segment(self, segment: int, total_segments: int) -> Self:
        if total_segments <= 0:
            raise ArgumentError("total_segments must be positive")
        if segment < 0 or segment >= total_segments:
            raise ArgumentError("segment must be in [0, total_segments)")
        self._segment = segment
        self._total_segments = total_segments
        return self

    def to_request(self) -> dict[str, Any]:
        req = self._base_request()
        if self._segment is not None:
            req["Segment"] = self._segment
            req["TotalSegments"] = self._total_segments
        return self._finish_request(req)
