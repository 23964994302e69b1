from __future__ import annotations

from collections.abc import Callable

from .encryption import FieldEncryptionContext
from .mocks import ANY, FakeDynamoDBClient, FakeKmsClient, client_error


def fixed_rand_bytes(seed: bytes) -> Callable[[int], bytes]:
    """Deterministic nonce source: ``seed`` repeated to the requested length."""

    if not seed:
        raise ValueError("seed must be non-empty")

    def rand(n: int) -> bytes:
        if n < 0:
            raise ValueError("n must be >= 0")
        repeats = (n + len(seed) - 1) // len(seed)
        return (seed * repeats)[:n]

    return rand


class RecordingEncryptor:
    """Reversible fake encryptor that records every field it sees.

    Ciphertext is ``b"enc:" + plaintext``; ``fail_with`` makes encrypt raise.
    """

    prefix = b"enc:"

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.encrypted: list[tuple[str, FieldEncryptionContext]] = []

    def encrypt(self, plaintext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        if self.fail_with is not None:
            raise self.fail_with
        self.encrypted.append((field_name, context))
        return self.prefix + plaintext

    def decrypt(self, ciphertext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        if not ciphertext.startswith(self.prefix):
            raise ValueError(f"{field_name} was not encrypted by RecordingEncryptor")
        return ciphertext[len(self.prefix) :]


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "FakeKmsClient",
    "RecordingEncryptor",
    "client_error",
    "fixed_rand_bytes",
]
