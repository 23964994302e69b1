from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .attribute_value import AttributeValue, from_dynamodb_map


@dataclass(frozen=True)
class OperationContext:
    """Metadata captured from one executed request.

    Returned with every response instead of being stashed in shared state,
    so concurrent executions can be inspected independently.
    """

    operation_type: str
    table_names: tuple[str, ...] = ()
    index_name: str | None = None
    operation_count: int = 1
    consumed_capacity: Any = None
    item_collection_metrics: Any = None
    item_count: int | None = None
    scanned_count: int | None = None
    last_evaluated_key: dict[str, AttributeValue] | None = None
    pre_operation_values: dict[str, AttributeValue] | None = None
    post_operation_values: dict[str, AttributeValue] | None = None
    encryption_context_id: str | None = None
    response_metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def table_name(self) -> str | None:
        return self.table_names[0] if len(self.table_names) == 1 else None

    @staticmethod
    def from_response(
        operation_type: str,
        response: Mapping[str, Any],
        *,
        table_names: tuple[str, ...] = (),
        index_name: str | None = None,
        operation_count: int = 1,
        return_values: str | None = None,
        encryption_context_id: str | None = None,
    ) -> OperationContext:
        attributes = response.get("Attributes")
        pre: dict[str, AttributeValue] | None = None
        post: dict[str, AttributeValue] | None = None
        if attributes:
            decoded = from_dynamodb_map(attributes)
            if return_values in {"ALL_OLD", "UPDATED_OLD"}:
                pre = decoded
            else:
                post = decoded

        last_key = response.get("LastEvaluatedKey")
        return OperationContext(
            operation_type=operation_type,
            table_names=table_names,
            index_name=index_name,
            operation_count=operation_count,
            consumed_capacity=response.get("ConsumedCapacity"),
            item_collection_metrics=response.get("ItemCollectionMetrics"),
            item_count=response.get("Count"),
            scanned_count=response.get("ScannedCount"),
            last_evaluated_key=from_dynamodb_map(last_key) if last_key else None,
            pre_operation_values=pre,
            post_operation_values=post,
            encryption_context_id=encryption_context_id,
            response_metadata=dict(response.get("ResponseMetadata") or {}),
        )
