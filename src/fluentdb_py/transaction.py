from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Self

from botocore.exceptions import ClientError

from .aws_errors import map_transaction_error
from .composer import RequestGroupComposer, TypedGetComposer
from .context import OperationContext
from .errors import ArgumentError
from .operations import (
    ConditionCheckOperation,
    DeleteOperation,
    GetOperation,
    OperationDescriptor,
    PutOperation,
    UpdateOperation,
)
from .responses import TransactionGetResponse, TransactionWriteResponse


class TransactionWriteBuilder(RequestGroupComposer[TransactionWriteResponse]):
    """Up to 100 writes committed atomically, in the order they were added."""

    _component = "transact_write"
    _method = "transact_write_items"
    _operation_type = "TransactWriteItems"
    _noun = "Transaction"
    _max_operations = 100
    _allowed = (PutOperation, UpdateOperation, DeleteOperation, ConditionCheckOperation)

    def __init__(self) -> None:
        super().__init__()
        self._return_item_collection_metrics: str | None = None
        self._client_request_token: str | None = None

    def return_item_collection_metrics(self) -> Self:
        self._return_item_collection_metrics = "SIZE"
        return self

    def with_client_request_token(self, token: str) -> Self:
        """Idempotency token; retries with the same token within 10 minutes are no-ops."""

        if not token or len(token) > 36:
            raise ArgumentError("client request token must be 1 to 36 characters")
        self._client_request_token = token
        return self

    def _compose(self, operations: Sequence[OperationDescriptor]) -> dict[str, Any]:
        req: dict[str, Any] = {"TransactItems": [op.to_transact_item() for op in operations]}
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        if self._return_item_collection_metrics:
            req["ReturnItemCollectionMetrics"] = self._return_item_collection_metrics
        if self._client_request_token:
            req["ClientRequestToken"] = self._client_request_token
        return req

    def _map_error(self, err: ClientError) -> Exception:
        return map_transaction_error(err, operation=self._method)

    def _wrap(self, raw: Mapping[str, Any], operations: Sequence[OperationDescriptor]) -> TransactionWriteResponse:
        context = OperationContext.from_response(
            self._operation_type,
            raw,
            table_names=self._table_names(operations),
            operation_count=len(operations),
            encryption_context_id=self._encryption_context_id(),
        )
        return TransactionWriteResponse(raw, context)


class TransactionGetBuilder(TypedGetComposer[TransactionGetResponse]):
    """Up to 100 gets read as one consistent snapshot."""

    _component = "transact_get"
    _method = "transact_get_items"
    _operation_type = "TransactGetItems"
    _noun = "Transaction"
    _max_operations = 100
    _allowed = (GetOperation,)

    def _compose(self, operations: Sequence[OperationDescriptor]) -> dict[str, Any]:
        req: dict[str, Any] = {"TransactItems": [op.to_transact_item() for op in operations]}
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        return req

    def _map_error(self, err: ClientError) -> Exception:
        return map_transaction_error(err, operation=self._method)

    def _wrap(self, raw: Mapping[str, Any], operations: Sequence[OperationDescriptor]) -> TransactionGetResponse:
        context = OperationContext.from_response(
            self._operation_type,
            raw,
            table_names=self._table_names(operations),
            operation_count=len(operations),
        )
        return TransactionGetResponse(raw, context)


def transact_write() -> TransactionWriteBuilder:
    return TransactionWriteBuilder()


def transact_get() -> TransactionGetBuilder:
    return TransactionGetBuilder()
