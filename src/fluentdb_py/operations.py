from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from .attribute_value import AttributeValue, to_dynamodb_map
from .parameters import ParameterMetadata


def _expression_fields(
    out: dict[str, Any],
    *,
    condition_expression: str | None = None,
    names: Mapping[str, str] | None = None,
    values: Mapping[str, AttributeValue] | None = None,
    return_values_on_condition_check_failure: str | None = None,
) -> dict[str, Any]:
    if condition_expression:
        out["ConditionExpression"] = condition_expression
    if names:
        out["ExpressionAttributeNames"] = dict(names)
    if values:
        out["ExpressionAttributeValues"] = to_dynamodb_map(values)
    if return_values_on_condition_check_failure:
        out["ReturnValuesOnConditionCheckFailure"] = return_values_on_condition_check_failure
    return out


@dataclass(frozen=True)
class PutOperation:
    kind: ClassVar[str] = "Put"

    table_name: str
    item: Mapping[str, AttributeValue]
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, AttributeValue] | None = None
    return_values_on_condition_check_failure: str | None = None
    encrypted_parameters: tuple[ParameterMetadata, ...] = ()
    encrypted_attributes: tuple[ParameterMetadata, ...] = ()

    def to_transact_item(self) -> dict[str, Any]:
        body = {"TableName": self.table_name, "Item": to_dynamodb_map(self.item)}
        return {
            "Put": _expression_fields(
                body,
                condition_expression=self.condition_expression,
                names=self.expression_attribute_names,
                values=self.expression_attribute_values,
                return_values_on_condition_check_failure=self.return_values_on_condition_check_failure,
            )
        }

    def to_write_request(self) -> dict[str, Any]:
        return {"PutRequest": {"Item": to_dynamodb_map(self.item)}}


@dataclass(frozen=True)
class DeleteOperation:
    kind: ClassVar[str] = "Delete"

    table_name: str
    key: Mapping[str, AttributeValue]
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, AttributeValue] | None = None
    return_values_on_condition_check_failure: str | None = None

    def to_transact_item(self) -> dict[str, Any]:
        body = {"TableName": self.table_name, "Key": to_dynamodb_map(self.key)}
        return {
            "Delete": _expression_fields(
                body,
                condition_expression=self.condition_expression,
                names=self.expression_attribute_names,
                values=self.expression_attribute_values,
                return_values_on_condition_check_failure=self.return_values_on_condition_check_failure,
            )
        }

    def to_write_request(self) -> dict[str, Any]:
        return {"DeleteRequest": {"Key": to_dynamodb_map(self.key)}}


@dataclass(frozen=True)
class UpdateOperation:
    kind: ClassVar[str] = "Update"

    table_name: str
    key: Mapping[str, AttributeValue]
    update_expression: str
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, AttributeValue] | None = None
    return_values_on_condition_check_failure: str | None = None
    encrypted_parameters: tuple[ParameterMetadata, ...] = ()

    def to_transact_item(self) -> dict[str, Any]:
        body = {
            "TableName": self.table_name,
            "Key": to_dynamodb_map(self.key),
            "UpdateExpression": self.update_expression,
        }
        return {
            "Update": _expression_fields(
                body,
                condition_expression=self.condition_expression,
                names=self.expression_attribute_names,
                values=self.expression_attribute_values,
                return_values_on_condition_check_failure=self.return_values_on_condition_check_failure,
            )
        }


@dataclass(frozen=True)
class ConditionCheckOperation:
    kind: ClassVar[str] = "ConditionCheck"

    table_name: str
    key: Mapping[str, AttributeValue]
    condition_expression: str
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, AttributeValue] | None = None
    return_values_on_condition_check_failure: str | None = None

    def to_transact_item(self) -> dict[str, Any]:
        body = {"TableName": self.table_name, "Key": to_dynamodb_map(self.key)}
        return {
            "ConditionCheck": _expression_fields(
                body,
                condition_expression=self.condition_expression,
                names=self.expression_attribute_names,
                values=self.expression_attribute_values,
                return_values_on_condition_check_failure=self.return_values_on_condition_check_failure,
            )
        }


@dataclass(frozen=True)
class GetOperation:
    kind: ClassVar[str] = "Get"

    table_name: str
    key: Mapping[str, AttributeValue]
    projection_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    consistent_read: bool = False

    def to_transact_item(self) -> dict[str, Any]:
        body: dict[str, Any] = {"TableName": self.table_name, "Key": to_dynamodb_map(self.key)}
        if self.projection_expression:
            body["ProjectionExpression"] = self.projection_expression
        if self.expression_attribute_names:
            body["ExpressionAttributeNames"] = dict(self.expression_attribute_names)
        return {"Get": body}


type WriteOperation = PutOperation | DeleteOperation | UpdateOperation | ConditionCheckOperation
type OperationDescriptor = WriteOperation | GetOperation
