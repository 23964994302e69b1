from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _mismatch(expected: Any, actual: Any, path: str) -> str | None:
    """First difference between ``expected`` and ``actual``, or None.

    Dict keys absent from ``expected`` are ignored; lists must match element for element.
    """

    if expected is ANY:
        return None
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return f"{path}: expected dict, got {type(actual).__name__}"
        for key, value in expected.items():
            if key not in actual:
                return f"{path}: missing key {key!r}"
            found = _mismatch(value, actual[key], f"{path}.{key}")
            if found:
                return found
        return None
    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected list, got {type(actual).__name__}"
        if len(expected) != len(actual):
            return f"{path}: expected {len(expected)} items, got {len(actual)}"
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            found = _mismatch(e, a, f"{path}[{i}]")
            if found:
                return found
        return None
    return None if expected == actual else f"{path}: expected {expected!r}, got {actual!r}"


def client_error(
    code: str,
    message: str = "",
    *,
    operation: str = "DynamoDB",
    **extra: Any,
) -> ClientError:
    """A botocore ``ClientError`` shaped like the ones the real client raises.

    Extra keyword arguments land at the top level of the error response,
    e.g. ``CancellationReasons`` for a canceled transaction.
    """

    response: dict[str, Any] = {"Error": {"Code": code, "Message": message}, **extra}
    return ClientError(response, operation)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None

    def check(self, method: str, request: dict[str, Any]) -> Mapping[str, Any]:
        if self.method != method:
            raise AssertionError(f"expected {self.method}, got {method}")
        if callable(self.expected):
            self.expected(request)
        elif self.expected is not None:
            problem = _mismatch(dict(self.expected), request, method)
            if problem:
                raise AssertionError(problem)
        if self.error is not None:
            raise self.error
        return dict(self.response or {})


def _store_call(method: str) -> Callable[..., Mapping[str, Any]]:
    def call(self: FakeDynamoDBClient, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle(method, kwargs)

    call.__name__ = method
    return call


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client.

    Each ``expect`` queues one call; calls must arrive in the queued order.
    Every call is recorded in ``calls`` whether or not it matched.
    """

    def __init__(self) -> None:
        self._queue: deque[ExpectedCall] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._queue.append(ExpectedCall(method, expected, response, error))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def assert_no_pending(self) -> None:
        if self._queue:
            raise AssertionError(f"pending expected calls: {[c.method for c in self._queue]!r}")

    def _handle(self, method: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(request)))
        if not self._queue:
            raise AssertionError(f"unexpected call: {method}")
        return self._queue.popleft().check(method, request)

    put_item = _store_call("put_item")
    get_item = _store_call("get_item")
    update_item = _store_call("update_item")
    delete_item = _store_call("delete_item")
    query = _store_call("query")
    scan = _store_call("scan")
    batch_get_item = _store_call("batch_get_item")
    batch_write_item = _store_call("batch_write_item")
    transact_write_items = _store_call("transact_write_items")
    transact_get_items = _store_call("transact_get_items")


class FakeKmsClient:
    """KMS double that hands out one fixed data key.

    ``decrypt`` only accepts the blob it issued; ``error`` makes every call raise.
    """

    def __init__(self, *, plaintext_key: bytes, ciphertext_blob: bytes, error: Exception | None = None) -> None:
        self.plaintext_key = plaintext_key
        self.ciphertext_blob = ciphertext_blob
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _record(self, method: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((method, dict(kwargs)))
        if self.error is not None:
            raise self.error

    def generate_data_key(self, **kwargs: Any) -> dict[str, Any]:
        self._record("generate_data_key", kwargs)
        return {"Plaintext": self.plaintext_key, "CiphertextBlob": self.ciphertext_blob}

    def decrypt(self, **kwargs: Any) -> dict[str, Any]:
        self._record("decrypt", kwargs)
        if kwargs.get("CiphertextBlob") != self.ciphertext_blob:
            raise client_error("InvalidCiphertextException", "unknown data key", operation="Decrypt")
        return {"Plaintext": self.plaintext_key}
