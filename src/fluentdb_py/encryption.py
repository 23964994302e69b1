from __future__ import annotations

import json
import os
import struct
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Protocol

from botocore.exceptions import ClientError
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .attribute_value import AttributeValue, marshal_attribute_value_json, unmarshal_attribute_value_json
from .errors import AwsError, EncryptionNotConfiguredError, FieldEncryptionError, ValidationError
from .operations import OperationDescriptor, PutOperation, UpdateOperation
from .parameters import ParameterMetadata

_ENVELOPE_VERSION = 1
_NONCE_SIZE = 12


@dataclass(frozen=True)
class FieldEncryptionContext:
    context_id: str | None = None
    cache_ttl_seconds: int = 300
    is_external_blob: bool = False
    entity_id: str | None = None


class FieldEncryptor(Protocol):
    def encrypt(self, plaintext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes: ...

    def decrypt(self, ciphertext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes: ...


def _aad(field_name: str, context: FieldEncryptionContext) -> bytes:
    aad = f"fluentdb:encrypted:v1|field={field_name}"
    if context.context_id:
        aad = f"{aad}|context={context.context_id}"
    return aad.encode()


def attribute_plaintext(av: AttributeValue) -> bytes:
    return json.dumps(
        marshal_attribute_value_json(av),
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class AesGcmFieldEncryptor:
    """AES-GCM with a caller-held 128/192/256-bit key."""

    def __init__(self, key: bytes, *, rand_bytes: Callable[[int], bytes] = os.urandom) -> None:
        if len(key) not in (16, 24, 32):
            raise ValidationError("AES-GCM keys must be 16, 24, or 32 bytes")
        self._aes = AESGCM(key)
        self._rand_bytes = rand_bytes

    def encrypt(self, plaintext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        nonce = self._rand_bytes(_NONCE_SIZE)
        return nonce + self._aes.encrypt(nonce, plaintext, _aad(field_name, context))

    def decrypt(self, ciphertext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        if len(ciphertext) <= _NONCE_SIZE:
            raise ValidationError("ciphertext is too short")
        nonce, ct = ciphertext[:_NONCE_SIZE], ciphertext[_NONCE_SIZE:]
        return self._aes.decrypt(nonce, ct, _aad(field_name, context))


class KmsFieldEncryptor:
    """Envelope encryption: a KMS data key per value, AES-GCM for the payload.

    Layout: version byte, 2-byte big-endian length of the encrypted data key,
    the encrypted data key, a 12-byte nonce, then the AES-GCM ciphertext.
    """

    def __init__(
        self,
        *,
        kms_key_arn: str,
        kms_client: Any,
        rand_bytes: Callable[[int], bytes] = os.urandom,
    ) -> None:
        if not kms_key_arn:
            raise ValidationError("kms_key_arn is required")
        self._kms_key_arn = kms_key_arn
        self._kms = kms_client
        self._rand_bytes = rand_bytes

    def encrypt(self, plaintext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        try:
            data_key = self._kms.generate_data_key(KeyId=self._kms_key_arn, KeySpec="AES_256")
            dek = data_key["Plaintext"]
            edk = data_key["CiphertextBlob"]
        except ClientError as err:
            code = str(err.response.get("Error", {}).get("Code", ""))
            message = str(err.response.get("Error", {}).get("Message", ""))
            raise AwsError(code=code or "KMSGenerateDataKeyError", message=message or str(err)) from err

        if not isinstance(dek, (bytes, bytearray)) or not isinstance(edk, (bytes, bytearray)):
            raise ValidationError("kms GenerateDataKey returned invalid key types")

        nonce = self._rand_bytes(_NONCE_SIZE)
        ct = AESGCM(bytes(dek)).encrypt(nonce, plaintext, _aad(field_name, context))
        return struct.pack(">BH", _ENVELOPE_VERSION, len(edk)) + bytes(edk) + nonce + ct

    def decrypt(self, ciphertext: bytes, field_name: str, context: FieldEncryptionContext) -> bytes:
        if len(ciphertext) < 3:
            raise ValidationError("encrypted envelope is truncated")
        version, edk_len = struct.unpack(">BH", ciphertext[:3])
        if version != _ENVELOPE_VERSION:
            raise ValidationError(f"unsupported encrypted envelope version: {version}")
        body = ciphertext[3:]
        if len(body) <= edk_len + _NONCE_SIZE:
            raise ValidationError("encrypted envelope is truncated")
        edk = body[:edk_len]
        nonce = body[edk_len : edk_len + _NONCE_SIZE]
        ct = body[edk_len + _NONCE_SIZE :]

        try:
            resp = self._kms.decrypt(CiphertextBlob=edk, KeyId=self._kms_key_arn)
            dek = resp["Plaintext"]
        except ClientError as err:
            code = str(err.response.get("Error", {}).get("Code", ""))
            message = str(err.response.get("Error", {}).get("Message", ""))
            raise AwsError(code=code or "KMSDecryptError", message=message or str(err)) from err

        if not isinstance(dek, (bytes, bytearray)):
            raise ValidationError("kms Decrypt returned invalid key types")
        return AESGCM(bytes(dek)).decrypt(nonce, ct, _aad(field_name, context))


def _needs_encryption(av: AttributeValue) -> bool:
    if av.type == "NULL" or (av.type == "BOOL" and av.value is None):
        return False
    return not (av.type == "S" and av.value == "")


def require_encryptor(
    flagged: Sequence[ParameterMetadata],
    encryptor: FieldEncryptor | None,
) -> FieldEncryptor:
    if encryptor is None:
        fields = ", ".join(sorted({m.field_name for m in flagged}))
        raise EncryptionNotConfiguredError(
            f"Fields [{fields}] require encryption but no FieldEncryptor is configured. "
            "Configure one with with_field_encryptor().",
            field_name=flagged[0].field_name,
            parameter_name=flagged[0].parameter_name,
        )
    return encryptor


def encrypt_parameters(
    values: Mapping[str, AttributeValue],
    flagged: Sequence[ParameterMetadata],
    encryptor: FieldEncryptor | None,
    context: FieldEncryptionContext,
) -> dict[str, AttributeValue]:
    """Return a copy of ``values`` with every flagged entry replaced by ciphertext."""

    out = dict(values)
    if not flagged:
        return out
    encryptor = require_encryptor(flagged, encryptor)

    for meta in flagged:
        av = out.get(meta.parameter_name)
        if av is None or not _needs_encryption(av):
            continue
        try:
            ciphertext = encryptor.encrypt(attribute_plaintext(av), meta.field_name, context)
        except Exception as err:
            raise FieldEncryptionError(
                f"Failed to encrypt field '{meta.field_name}' (parameter {meta.parameter_name}): {err}",
                field_name=meta.field_name,
                parameter_name=meta.parameter_name,
            ) from err
        out[meta.parameter_name] = AttributeValue.binary(ciphertext)
    return out


def encrypt_operation(
    operation: OperationDescriptor,
    encryptor: FieldEncryptor | None,
    context: FieldEncryptionContext,
) -> OperationDescriptor:
    if isinstance(operation, PutOperation):
        if not operation.encrypted_parameters and not operation.encrypted_attributes:
            return operation
        require_encryptor(operation.encrypted_parameters + operation.encrypted_attributes, encryptor)
        return replace(
            operation,
            item=encrypt_parameters(operation.item, operation.encrypted_attributes, encryptor, context),
            expression_attribute_values=encrypt_parameters(
                operation.expression_attribute_values or {},
                operation.encrypted_parameters,
                encryptor,
                context,
            ),
        )
    if isinstance(operation, UpdateOperation) and operation.encrypted_parameters:
        return replace(
            operation,
            expression_attribute_values=encrypt_parameters(
                operation.expression_attribute_values or {},
                operation.encrypted_parameters,
                encryptor,
                context,
            ),
        )
    return operation


def decrypt_attribute_value(
    av: AttributeValue | Mapping[str, Any],
    *,
    field_name: str,
    encryptor: FieldEncryptor,
    context: FieldEncryptionContext | None = None,
) -> AttributeValue:
    if not isinstance(av, AttributeValue):
        av = AttributeValue.from_dynamodb(av)
    if av.type != "B":
        raise ValidationError(f"encrypted field {field_name} must be binary, got {av.type}")

    try:
        plaintext = encryptor.decrypt(av.value, field_name, context or FieldEncryptionContext())
    except (ValidationError, AwsError):
        raise
    except Exception as err:
        raise ValidationError(f"failed to decrypt field {field_name}") from err

    try:
        enc = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as err:
        raise ValidationError("failed to parse decrypted attribute payload") from err
    return unmarshal_attribute_value_json(enc)
