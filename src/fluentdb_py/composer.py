from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Protocol, Self

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .encryption import FieldEncryptionContext, FieldEncryptor, encrypt_operation
from .errors import (
    ArgumentError,
    CapacityError,
    ClientConsistencyError,
    MissingClientError,
    NoOperationsError,
    ValidationError,
)
from .logs import get_logger
from .operations import OperationDescriptor

_CAPACITY_MODES = frozenset({"NONE", "TOTAL", "INDEXES"})


class OperationSource(Protocol):
    """Anything a composer can pull an operation from: the single-item builders."""

    @property
    def client(self) -> Any | None: ...

    def to_operation(self) -> OperationDescriptor: ...


class ComposerState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    FAILED = "failed"
    COMPOSED = "composed"


@dataclass(frozen=True)
class _Entry:
    operation: OperationDescriptor
    encryptor: FieldEncryptor | None
    context: FieldEncryptionContext | None


class RequestGroupComposer[R](ABC):
    """Aggregates single-item operations into one batch or transaction call.

    All added builders must share one client instance. Validation happens at
    execution: no operations, then no client, then the capacity limit. Any
    failure leaves the composer unusable.
    """

    _component: ClassVar[str]
    _method: ClassVar[str]
    _operation_type: ClassVar[str]
    _noun: ClassVar[str] = "Batch"
    _max_operations: ClassVar[int]
    _allowed: ClassVar[tuple[type, ...]]
    _capacity_hint: ClassVar[str | None] = None

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self._inferred_client: Any | None = None
        self._explicit_client: Any | None = None
        self._return_consumed_capacity: str | None = None
        self._field_encryptor: FieldEncryptor | None = None
        self._encryption_context: FieldEncryptionContext | None = None
        self._state = ComposerState.EMPTY
        self._logger = get_logger(self._component)

    @property
    def state(self) -> ComposerState:
        return self._state

    @property
    def operations(self) -> tuple[OperationDescriptor, ...]:
        return tuple(e.operation for e in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _ensure_usable(self) -> None:
        if self._state is ComposerState.FAILED:
            raise ValidationError(f"this {self._noun.lower()} failed earlier and cannot be reused; start a new one")

    def _fail(self, err: Exception) -> Exception:
        self._state = ComposerState.FAILED
        return err

    def add(self, builder: OperationSource) -> Self:
        self._ensure_usable()
        operation = builder.to_operation()
        if not isinstance(operation, self._allowed):
            allowed = ", ".join(t.kind for t in self._allowed)  # type: ignore[attr-defined]
            raise ValidationError(
                f"{operation.kind} operations cannot be added to {self._operation_type}; supported: {allowed}"
            )

        client = builder.client
        if client is not None:
            if self._inferred_client is None:
                self._inferred_client = client
            elif client is not self._inferred_client:
                raise self._fail(
                    ClientConsistencyError(
                        "All operations in a batch or transaction must use the same DynamoDB client instance. "
                        f"The builder for table {operation.table_name} was created with a different client."
                    )
                )

        self._entries.append(
            _Entry(
                operation=operation,
                encryptor=getattr(builder, "field_encryptor", None),
                context=getattr(builder, "encryption_context", None),
            )
        )
        self._state = ComposerState.ACCUMULATING
        return self

    def with_client(self, client: Any) -> Self:
        self._explicit_client = client
        return self

    def return_consumed_capacity(self, mode: str = "TOTAL") -> Self:
        if mode not in _CAPACITY_MODES:
            raise ArgumentError(f"invalid ReturnConsumedCapacity: {mode}")
        self._return_consumed_capacity = mode
        return self

    def with_field_encryptor(self, encryptor: FieldEncryptor) -> Self:
        """Fallback encryptor for added builders that were not given their own."""

        self._field_encryptor = encryptor
        return self

    def with_encryption_context(self, context: FieldEncryptionContext | str) -> Self:
        if isinstance(context, str):
            context = FieldEncryptionContext(context_id=context)
        self._encryption_context = context
        return self

    def _check_not_empty(self) -> None:
        if not self._entries:
            raise self._fail(
                NoOperationsError(f"{self._noun} contains no operations. Add at least one operation using add().")
            )

    def _check_capacity(self) -> None:
        if len(self._entries) > self._max_operations:
            raise self._fail(
                CapacityError(
                    operation=self._method,
                    count=len(self._entries),
                    maximum=self._max_operations,
                    hint=self._capacity_hint,
                )
            )

    def _resolve_client(self, client: Any | None) -> Any:
        for candidate in (client, self._explicit_client, self._inferred_client):
            if candidate is not None:
                return candidate
        raise self._fail(
            MissingClientError(
                "No DynamoDB client specified. Either pass a client to execute(), call with_client(), "
                "or add a request builder that was created with a client."
            )
        )

    def _prepare(self) -> list[OperationDescriptor]:
        out: list[OperationDescriptor] = []
        for entry in self._entries:
            encryptor = entry.encryptor or self._field_encryptor
            context = self._encryption_context or entry.context or FieldEncryptionContext()
            try:
                out.append(encrypt_operation(entry.operation, encryptor, context))
            except Exception:
                self._state = ComposerState.FAILED
                raise
        return out

    @abstractmethod
    def _compose(self, operations: Sequence[OperationDescriptor]) -> dict[str, Any]: ...

    @abstractmethod
    def _wrap(self, raw: Mapping[str, Any], operations: Sequence[OperationDescriptor]) -> R: ...

    def _map_error(self, err: ClientError) -> Exception:
        return map_client_error(err, operation=self._method)

    def _table_names(self, operations: Sequence[OperationDescriptor]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(op.table_name for op in operations))

    def _encryption_context_id(self) -> str | None:
        if self._encryption_context is not None:
            return self._encryption_context.context_id
        for entry in self._entries:
            if entry.context is not None and entry.context.context_id:
                return entry.context.context_id
        return None

    def to_request(self) -> dict[str, Any]:
        """The composed request, with flagged fields already encrypted."""

        self._ensure_usable()
        self._check_not_empty()
        self._check_capacity()
        return self._compose(self._prepare())

    def execute(self, client: Any | None = None) -> R:
        self._ensure_usable()
        self._check_not_empty()
        resolved = self._resolve_client(client)
        self._check_capacity()

        operations = self._prepare()
        request = self._compose(operations)
        log = self._logger.bind(
            operation=self._method,
            table_names=list(self._table_names(operations)),
            operation_count=len(operations),
        )
        log.debug("sending request")
        try:
            raw = getattr(resolved, self._method)(**request)
        except ClientError as err:
            mapped = self._map_error(err)
            log.error("request failed", error=type(mapped).__name__)
            raise mapped from err

        self._state = ComposerState.COMPOSED
        return self._wrap(raw, operations)


class TypedGetComposer[R](RequestGroupComposer[R]):
    """Adds positional typed decoding to the get composers."""

    _max_mapped_types: ClassVar[int] = 8

    def execute_and_map(self, *item_types: Any, client: Any | None = None) -> tuple[Any, ...]:
        """Execute and decode item ``i`` as ``item_types[i]``; missing items are ``None``."""

        if not 1 <= len(item_types) <= self._max_mapped_types:
            raise ArgumentError(
                f"execute_and_map supports between 1 and {self._max_mapped_types} item types, got {len(item_types)}"
            )
        response: Any = self.execute(client)
        return tuple(response.get_item(i, t) for i, t in enumerate(item_types))
