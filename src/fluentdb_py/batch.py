from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Self, cast

from .attribute_value import to_dynamodb_map
from .composer import RequestGroupComposer, TypedGetComposer
from .context import OperationContext
from .operations import DeleteOperation, GetOperation, OperationDescriptor, PutOperation
from .responses import BatchGetResponse, BatchWriteResponse

_SPLIT_HINT = "Consider splitting your operations into multiple batches or using chunking logic."


class BatchWriteBuilder(RequestGroupComposer[BatchWriteResponse]):
    """Up to 25 puts and deletes in one ``BatchWriteItem`` call.

    The store does not evaluate conditions in batch writes, so any condition
    on an added put or delete is dropped.
    """

    _component = "batch_write"
    _method = "batch_write_item"
    _operation_type = "BatchWriteItem"
    _max_operations = 25
    _allowed = (PutOperation, DeleteOperation)
    _capacity_hint = _SPLIT_HINT

    def __init__(self) -> None:
        super().__init__()
        self._return_item_collection_metrics: str | None = None

    def return_item_collection_metrics(self) -> Self:
        self._return_item_collection_metrics = "SIZE"
        return self

    def _compose(self, operations: Sequence[OperationDescriptor]) -> dict[str, Any]:
        request_items: dict[str, list[dict[str, Any]]] = {}
        for op in cast(Sequence[PutOperation | DeleteOperation], operations):
            request_items.setdefault(op.table_name, []).append(op.to_write_request())

        req: dict[str, Any] = {"RequestItems": request_items}
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        if self._return_item_collection_metrics:
            req["ReturnItemCollectionMetrics"] = self._return_item_collection_metrics
        return req

    def _wrap(self, raw: Mapping[str, Any], operations: Sequence[OperationDescriptor]) -> BatchWriteResponse:
        context = OperationContext.from_response(
            self._operation_type,
            raw,
            table_names=self._table_names(operations),
            operation_count=len(operations),
            encryption_context_id=self._encryption_context_id(),
        )
        response = BatchWriteResponse(raw, context)
        if response.has_unprocessed_items:
            self._logger.warning(
                "batch write left unprocessed items",
                unprocessed={t: len(v) for t, v in response.unprocessed_items.items()},
            )
        return response


class BatchGetBuilder(TypedGetComposer[BatchGetResponse]):
    """Up to 100 gets in one ``BatchGetItem`` call.

    Projection, consistency, and attribute names are per table in the wire
    request; the first get added for a table supplies them.
    """

    _component = "batch_get"
    _method = "batch_get_item"
    _operation_type = "BatchGetItem"
    _max_operations = 100
    _allowed = (GetOperation,)
    _capacity_hint = _SPLIT_HINT

    def _compose(self, operations: Sequence[OperationDescriptor]) -> dict[str, Any]:
        request_items: dict[str, dict[str, Any]] = {}
        for op in cast(Sequence[GetOperation], operations):
            entry = request_items.get(op.table_name)
            if entry is None:
                entry = {"Keys": []}
                if op.projection_expression:
                    entry["ProjectionExpression"] = op.projection_expression
                if op.expression_attribute_names:
                    entry["ExpressionAttributeNames"] = dict(op.expression_attribute_names)
                if op.consistent_read:
                    entry["ConsistentRead"] = True
                request_items[op.table_name] = entry
            entry["Keys"].append(to_dynamodb_map(op.key))

        req: dict[str, Any] = {"RequestItems": request_items}
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        return req

    def _wrap(self, raw: Mapping[str, Any], operations: Sequence[OperationDescriptor]) -> BatchGetResponse:
        context = OperationContext.from_response(
            self._operation_type,
            raw,
            table_names=self._table_names(operations),
            operation_count=len(operations),
        )
        response = BatchGetResponse(
            raw,
            context,
            table_order=[op.table_name for op in operations],
            requested_keys=[to_dynamodb_map(op.key) for op in operations if isinstance(op, GetOperation)],
        )
        if response.has_unprocessed_keys:
            self._logger.warning(
                "batch get left unprocessed keys",
                unprocessed={t: len(v.get("Keys") or []) for t, v in response.unprocessed_keys.items()},
            )
        return response


def batch_write() -> BatchWriteBuilder:
    return BatchWriteBuilder()


def batch_get() -> BatchGetBuilder:
    return BatchGetBuilder()
