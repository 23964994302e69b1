from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Self, cast

from botocore.exceptions import ClientError

from .attribute_value import AttributeValue, from_dynamodb_map
from .aws_errors import map_client_error
from .context import OperationContext
from .converter import to_attribute_value, to_item, to_key_value
from .encryption import FieldEncryptionContext, FieldEncryptor, encrypt_operation
from .errors import ArgumentError, MissingClientError, ValidationError
from .expressions import format_expression
from .logs import describe_item, get_logger
from .operations import (
    ConditionCheckOperation,
    DeleteOperation,
    GetOperation,
    OperationDescriptor,
    PutOperation,
    UpdateOperation,
)
from .parameters import AttributeNames, AttributeValues, ParameterMetadata
from .responses import ItemResponse

_RETURN_VALUES = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})
# PutItem and DeleteItem only return the item as it was
_OLD_RETURN_VALUES = frozenset({"NONE", "ALL_OLD"})
_CAPACITY_MODES = frozenset({"NONE", "TOTAL", "INDEXES"})


class HasTable:
    _table_name: str | None

    @property
    def table_name(self) -> str | None:
        return self._table_name

    def for_table(self, table_name: str) -> Self:
        if not table_name:
            raise ArgumentError("table name must be non-empty")
        self._table_name = table_name
        return self

    def _require_table(self) -> str:
        if not self._table_name:
            raise ValidationError("table name is required; call for_table()")
        return self._table_name


class RequestBuilder(HasTable):
    """State shared by every single-item builder.

    Capabilities (keys, conditions, value tables, ...) are layered on as
    mixins; each builder only exposes the ones its request supports.
    """

    _component: ClassVar[str] = "request"

    def __init__(self, client: Any | None = None) -> None:
        self._client = client
        self._table_name: str | None = None
        self._key: dict[str, AttributeValue] = {}
        self._names = AttributeNames()
        self._values = AttributeValues()
        self._condition_expression: str | None = None
        self._return_values_on_condition_check_failure: str | None = None
        self._return_consumed_capacity: str | None = None
        self._logger = get_logger(self._component)

    @property
    def client(self) -> Any | None:
        return self._client

    @property
    def attribute_names(self) -> dict[str, str]:
        return self._names.values

    @property
    def attribute_values(self) -> dict[str, AttributeValue]:
        return self._values.values

    def _format(self, expression: str, args: Sequence[Any]) -> str:
        if not expression:
            raise ArgumentError("expression must be non-empty")
        return format_expression(expression, args, self._values).expression

    def _require_key(self) -> dict[str, AttributeValue]:
        if not self._key:
            raise ValidationError("key is required; call with_key()")
        return dict(self._key)

    def _resolve_client(self, client: Any | None) -> Any:
        resolved = client if client is not None else self._client
        if resolved is None:
            raise MissingClientError(
                "No DynamoDB client specified. Either pass a client to execute() or create the builder with one."
            )
        return resolved

    def _send(self, client: Any, method: str, request: dict[str, Any]) -> Mapping[str, Any]:
        log = self._logger.bind(operation=method, table_name=request.get("TableName"))
        log.debug("sending request")
        try:
            return getattr(client, method)(**request)
        except ClientError as err:
            mapped = map_client_error(err, operation=method)
            log.error("request failed", error=type(mapped).__name__)
            raise mapped from err


class HasKey:
    _key: dict[str, AttributeValue]

    def with_key(
        self,
        name: str,
        value: Any,
        sort_key_name: str | None = None,
        sort_key_value: Any = None,
    ) -> Self:
        if not name:
            raise ArgumentError("key attribute name must be non-empty")
        self._key[name] = to_key_value(value)
        if sort_key_name is not None:
            self._key[sort_key_name] = to_key_value(sort_key_value)
        return self


class HasAttributeNames:
    _names: AttributeNames

    def with_attribute(self, alias: str, name: str) -> Self:
        self._names.with_attribute(alias, name)
        return self

    def with_attributes(self, names: Mapping[str, str]) -> Self:
        self._names.with_attributes(names)
        return self


class HasAttributeValues:
    _values: AttributeValues

    def with_value(self, name: str, value: Any, conditional_use: bool = True, *, kind: Any = None) -> Self:
        self._values.with_value(name, value, conditional_use, kind=kind)
        return self

    def with_values(self, values: Mapping[str, Any]) -> Self:
        self._values.with_values(values)
        return self


class HasConditionExpression:
    _condition_expression: str | None
    _return_values_on_condition_check_failure: str | None

    def where(self, expression: str, *args: Any) -> Self:
        """Set the condition; ``{0}``, ``{1:F2}``, ... are filled from ``args``."""

        self._condition_expression = self._format(expression, args)  # type: ignore[attr-defined]
        return self

    def return_values_on_condition_check_failure(self, option: str = "ALL_OLD") -> Self:
        if option not in {"NONE", "ALL_OLD"}:
            raise ArgumentError(f"invalid ReturnValuesOnConditionCheckFailure: {option}")
        self._return_values_on_condition_check_failure = option
        return self


class HasConsumedCapacity:
    _return_consumed_capacity: str | None

    def return_consumed_capacity(self, mode: str = "TOTAL") -> Self:
        if mode not in _CAPACITY_MODES:
            raise ArgumentError(f"invalid ReturnConsumedCapacity: {mode}")
        self._return_consumed_capacity = mode
        return self


class HasEncryption:
    _values: AttributeValues
    _field_encryptor: FieldEncryptor | None = None
    _encryption_context: FieldEncryptionContext = FieldEncryptionContext()

    @property
    def field_encryptor(self) -> FieldEncryptor | None:
        return self._field_encryptor

    @property
    def encryption_context(self) -> FieldEncryptionContext:
        return self._encryption_context

    def with_field_encryptor(self, encryptor: FieldEncryptor) -> Self:
        self._field_encryptor = encryptor
        return self

    def with_encryption_context(self, context: FieldEncryptionContext | str) -> Self:
        if isinstance(context, str):
            context = FieldEncryptionContext(context_id=context)
        self._encryption_context = context
        return self

    def with_encrypted_value(
        self,
        name: str,
        value: Any,
        *,
        field_name: str,
        attribute_name: str | None = None,
    ) -> Self:
        self._values.add_encrypted_value(name, value, field_name=field_name, attribute_name=attribute_name)
        return self

    def _encrypt(self, operation: OperationDescriptor) -> OperationDescriptor:
        return encrypt_operation(operation, self._field_encryptor, self._encryption_context)


def _request_body(operation: OperationDescriptor) -> dict[str, Any]:
    return dict(operation.to_transact_item()[operation.kind])


class GetItemRequestBuilder(HasKey, HasAttributeNames, HasConsumedCapacity, RequestBuilder):
    _component = "get_item"

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._projection: str | None = None
        self._consistent_read = False

    def with_projection(self, expression: str) -> Self:
        if not expression:
            raise ArgumentError("projection expression must be non-empty")
        self._projection = expression
        return self

    def using_consistent_read(self, consistent: bool = True) -> Self:
        self._consistent_read = consistent
        return self

    def to_operation(self) -> GetOperation:
        return GetOperation(
            table_name=self._require_table(),
            key=self._require_key(),
            projection_expression=self._projection,
            expression_attribute_names=self._names.values or None,
            consistent_read=self._consistent_read,
        )

    def to_request(self) -> dict[str, Any]:
        req = _request_body(self.to_operation())
        if self._consistent_read:
            req["ConsistentRead"] = True
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        return req

    def execute(self, client: Any | None = None) -> ItemResponse:
        resolved = self._resolve_client(client)
        req = self.to_request()
        resp = self._send(resolved, "get_item", req)
        item = resp.get("Item")
        return ItemResponse(
            item=from_dynamodb_map(item) if item else None,
            context=OperationContext.from_response("GetItem", resp, table_names=(req["TableName"],)),
            raw=resp,
        )


class _WriteRequestBuilder(HasAttributeNames, HasAttributeValues, HasConditionExpression, HasConsumedCapacity, RequestBuilder, ABC):
    _operation_type: ClassVar[str]
    _method: ClassVar[str]
    _return_value_options: ClassVar[frozenset[str]] = _RETURN_VALUES

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._return_values: str | None = None
        self._return_item_collection_metrics: str | None = None

    def return_values(self, option: str) -> Self:
        if option not in self._return_value_options:
            raise ArgumentError(f"invalid ReturnValues for {self._operation_type}: {option}")
        self._return_values = option
        return self

    def return_all_old_values(self) -> Self:
        return self.return_values("ALL_OLD")

    def return_item_collection_metrics(self) -> Self:
        self._return_item_collection_metrics = "SIZE"
        return self

    @abstractmethod
    def to_operation(self) -> OperationDescriptor: ...

    def _request_from(self, operation: OperationDescriptor) -> dict[str, Any]:
        req = _request_body(operation)
        if self._return_values:
            req["ReturnValues"] = self._return_values
        if self._return_consumed_capacity:
            req["ReturnConsumedCapacity"] = self._return_consumed_capacity
        if self._return_item_collection_metrics:
            req["ReturnItemCollectionMetrics"] = self._return_item_collection_metrics
        return req

    def to_request(self) -> dict[str, Any]:
        return self._request_from(self.to_operation())

    def _prepare(self, operation: OperationDescriptor) -> OperationDescriptor:
        return operation

    def _context_id(self) -> str | None:
        return None

    def execute(self, client: Any | None = None) -> ItemResponse:
        resolved = self._resolve_client(client)
        req = self._request_from(self._prepare(self.to_operation()))
        resp = self._send(resolved, self._method, req)
        attributes = resp.get("Attributes")
        return ItemResponse(
            item=from_dynamodb_map(attributes) if attributes else None,
            context=OperationContext.from_response(
                self._operation_type,
                resp,
                table_names=(req["TableName"],),
                return_values=self._return_values,
                encryption_context_id=self._context_id(),
            ),
            raw=resp,
        )


class PutItemRequestBuilder(HasEncryption, _WriteRequestBuilder):
    _component = "put_item"
    _operation_type = "PutItem"
    _method = "put_item"
    _return_value_options = _OLD_RETURN_VALUES

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._item: dict[str, AttributeValue] = {}
        self._encrypted_attributes: dict[str, ParameterMetadata] = {}

    def with_item(self, item: Any) -> Self:
        self._item = to_item(item)
        return self

    def with_item_attribute(self, name: str, value: Any) -> Self:
        av = to_attribute_value(value)
        if av is None:
            self._item.pop(name, None)
        else:
            self._item[name] = av
        return self

    def with_encrypted_attribute(self, name: str, value: Any, *, field_name: str | None = None) -> Self:
        self.with_item_attribute(name, value)
        self._encrypted_attributes[name] = ParameterMetadata(
            parameter_name=name,
            value=value,
            requires_encryption=True,
            property_name=field_name or name,
            attribute_name=name,
        )
        return self

    def to_operation(self) -> PutOperation:
        table = self._require_table()
        if not self._item:
            raise ValidationError("item is required; call with_item()")
        return PutOperation(
            table_name=table,
            item=dict(self._item),
            condition_expression=self._condition_expression,
            expression_attribute_names=self._names.values or None,
            expression_attribute_values=self._values.values or None,
            return_values_on_condition_check_failure=self._return_values_on_condition_check_failure,
            encrypted_parameters=self._values.metadata,
            encrypted_attributes=tuple(m for name, m in self._encrypted_attributes.items() if name in self._item),
        )

    def _prepare(self, operation: OperationDescriptor) -> OperationDescriptor:
        put = cast(PutOperation, operation)
        self._logger.debug(
            "put item",
            table_name=put.table_name,
            attributes=describe_item(put.item, set(self._encrypted_attributes)),
        )
        return self._encrypt(operation)

    def _context_id(self) -> str | None:
        return self._encryption_context.context_id


class UpdateItemRequestBuilder(HasKey, HasEncryption, _WriteRequestBuilder):
    _component = "update_item"
    _operation_type = "UpdateItem"
    _method = "update_item"

    def __init__(self, client: Any | None = None) -> None:
        super().__init__(client)
        self._update_expression: str | None = None

    def set(self, expression: str, *args: Any) -> Self:
        """Set the update expression; positional ``{n}`` tokens are filled from ``args``."""

        self._update_expression = self._format(expression, args)
        return self

    def return_all_new_values(self) -> Self:
        return self.return_values("ALL_NEW")

    def return_updated_new_values(self) -> Self:
        return self.return_values("UPDATED_NEW")

    def return_updated_old_values(self) -> Self:
        return self.return_values("UPDATED_OLD")

    def to_operation(self) -> UpdateOperation:
        table = self._require_table()
        key = self._require_key()
        if not self._update_expression:
            raise ValidationError("update expression is required; call set()")
        return UpdateOperation(
            table_name=table,
            key=key,
            update_expression=self._update_expression,
            condition_expression=self._condition_expression,
            expression_attribute_names=self._names.values or None,
            expression_attribute_values=self._values.values or None,
            return_values_on_condition_check_failure=self._return_values_on_condition_check_failure,
            encrypted_parameters=self._values.metadata,
        )

    def _prepare(self, operation: OperationDescriptor) -> OperationDescriptor:
        return self._encrypt(operation)

    def _context_id(self) -> str | None:
        return self._encryption_context.context_id


class DeleteItemRequestBuilder(HasKey, _WriteRequestBuilder):
    _component = "delete_item"
    _operation_type = "DeleteItem"
    _method = "delete_item"
    _return_value_options = _OLD_RETURN_VALUES

    def to_operation(self) -> DeleteOperation:
        return DeleteOperation(
            table_name=self._require_table(),
            key=self._require_key(),
            condition_expression=self._condition_expression,
            expression_attribute_names=self._names.values or None,
            expression_attribute_values=self._values.values or None,
            return_values_on_condition_check_failure=self._return_values_on_condition_check_failure,
        )


class ConditionCheckBuilder(HasKey, HasAttributeNames, HasAttributeValues, HasConditionExpression, RequestBuilder):
    """A transaction-only check that an item satisfies a condition."""

    _component = "condition_check"

    def to_operation(self) -> ConditionCheckOperation:
        table = self._require_table()
        key = self._require_key()
        if not self._condition_expression:
            raise ValidationError("condition expression is required; call where()")
        return ConditionCheckOperation(
            table_name=table,
            key=key,
            condition_expression=self._condition_expression,
            expression_attribute_names=self._names.values or None,
            expression_attribute_values=self._values.values or None,
            return_values_on_condition_check_failure=self._return_values_on_condition_check_failure,
        )
