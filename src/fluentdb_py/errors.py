from __future__ import annotations


class FluentDbError(Exception):
    pass


class ConditionFailedError(FluentDbError):
    pass


class NotFoundError(FluentDbError):
    pass


class ValidationError(FluentDbError):
    pass


class FormatError(FluentDbError, ValueError):
    pass


class ArgumentError(FluentDbError, ValueError):
    pass


class MappingError(FluentDbError):
    pass


class ClientConsistencyError(FluentDbError):
    pass


class NoOperationsError(FluentDbError):
    pass


class MissingClientError(FluentDbError):
    pass


class CapacityError(FluentDbError):
    def __init__(self, *, operation: str, count: int, maximum: int, hint: str | None = None) -> None:
        noun = "Transaction" if operation.startswith("transact") else "Batch"
        unit = "transaction" if noun == "Transaction" else "batch"
        message = (
            f"{noun} contains {count} operations, but DynamoDB supports a maximum of "
            f"{maximum} operations per {unit}."
        )
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.operation = operation
        self.count = count
        self.maximum = maximum


class FieldEncryptionError(FluentDbError):
    def __init__(self, message: str, *, field_name: str, parameter_name: str | None = None) -> None:
        super().__init__(message)
        self.field_name = field_name
        self.parameter_name = parameter_name


class EncryptionNotConfiguredError(FieldEncryptionError):
    pass


class TransactionCanceledError(FluentDbError):
    def __init__(self, *, message: str, reason_codes: tuple[str, ...]) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes


class AwsError(FluentDbError):
    def __init__(self, *, code: str, message: str, operation: str | None = None) -> None:
        prefix = f"{operation} failed: " if operation else ""
        super().__init__(f"{prefix}{code}: {message}")
        self.code = code
        self.message = message
        self.operation = operation
