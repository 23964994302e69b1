from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .attribute_value import AttributeValue
from .batch import BatchGetBuilder, BatchWriteBuilder, batch_get, batch_write
from .builders import (
    ConditionCheckBuilder,
    DeleteItemRequestBuilder,
    GetItemRequestBuilder,
    PutItemRequestBuilder,
    UpdateItemRequestBuilder,
)
from .context import OperationContext
from .converter import from_attribute_value, from_item, to_attribute_value, to_item
from .errors import (
    ArgumentError,
    AwsError,
    CapacityError,
    ClientConsistencyError,
    ConditionFailedError,
    EncryptionNotConfiguredError,
    FieldEncryptionError,
    FluentDbError,
    FormatError,
    MappingError,
    MissingClientError,
    NoOperationsError,
    NotFoundError,
    TransactionCanceledError,
    ValidationError,
)
from .expressions import FormattedExpression, format_expression
from .operations import (
    ConditionCheckOperation,
    DeleteOperation,
    GetOperation,
    OperationDescriptor,
    PutOperation,
    UpdateOperation,
)
from .parameters import AttributeNames, AttributeValues, ParameterGenerator, ParameterMetadata
from .query_builders import QueryRequestBuilder, ScanRequestBuilder
from .transaction import TransactionGetBuilder, TransactionWriteBuilder, transact_get, transact_write

if TYPE_CHECKING:
    from .encryption import (
        AesGcmFieldEncryptor,
        FieldEncryptionContext,
        FieldEncryptor,
        KmsFieldEncryptor,
        decrypt_attribute_value,
    )
    from .formatting import format_datetime, format_number, format_uuid
    from .logs import redact_item, redact_value
    from .query import Cursor, decode_cursor, encode_cursor
    from .runtime import (
        AwsCallMetric,
        create_boto3_config,
        get_dynamodb_client,
        get_kms_client,
        instrument_client,
        is_lambda_environment,
    )


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)

_LAZY = {
    "encryption": {
        "AesGcmFieldEncryptor",
        "FieldEncryptionContext",
        "FieldEncryptor",
        "KmsFieldEncryptor",
        "decrypt_attribute_value",
    },
    "formatting": {"format_datetime", "format_number", "format_uuid"},
    "logs": {"redact_item", "redact_value"},
    "query": {"Cursor", "decode_cursor", "encode_cursor"},
    "runtime": {
        "AwsCallMetric",
        "create_boto3_config",
        "get_dynamodb_client",
        "get_kms_client",
        "instrument_client",
        "is_lambda_environment",
    },
}


def __getattr__(name: str) -> Any:
    for module_name, names in _LAZY.items():
        if name in names:
            from importlib import import_module

            return getattr(import_module(f".{module_name}", __name__), name)
    raise AttributeError(name)


__all__ = [
    "AesGcmFieldEncryptor",
    "ArgumentError",
    "AttributeNames",
    "AttributeValue",
    "AttributeValues",
    "AwsCallMetric",
    "AwsError",
    "BatchGetBuilder",
    "BatchWriteBuilder",
    "CapacityError",
    "ClientConsistencyError",
    "ConditionCheckBuilder",
    "ConditionCheckOperation",
    "ConditionFailedError",
    "Cursor",
    "DeleteItemRequestBuilder",
    "DeleteOperation",
    "EncryptionNotConfiguredError",
    "FieldEncryptionContext",
    "FieldEncryptionError",
    "FieldEncryptor",
    "FluentDbError",
    "FormatError",
    "FormattedExpression",
    "GetItemRequestBuilder",
    "GetOperation",
    "KmsFieldEncryptor",
    "MappingError",
    "MissingClientError",
    "NoOperationsError",
    "NotFoundError",
    "OperationContext",
    "OperationDescriptor",
    "ParameterGenerator",
    "ParameterMetadata",
    "PutItemRequestBuilder",
    "PutOperation",
    "QueryRequestBuilder",
    "ScanRequestBuilder",
    "TransactionCanceledError",
    "TransactionGetBuilder",
    "TransactionWriteBuilder",
    "UpdateItemRequestBuilder",
    "UpdateOperation",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "batch_get",
    "batch_write",
    "create_boto3_config",
    "decode_cursor",
    "decrypt_attribute_value",
    "encode_cursor",
    "format_datetime",
    "format_expression",
    "format_number",
    "format_uuid",
    "from_attribute_value",
    "from_item",
    "get_dynamodb_client",
    "get_kms_client",
    "instrument_client",
    "is_lambda_environment",
    "redact_item",
    "redact_value",
    "to_attribute_value",
    "to_item",
    "transact_get",
    "transact_write",
]
