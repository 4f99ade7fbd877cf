"""Exceptions raised while extracting and transforming ledger operations."""

from __future__ import annotations


class TransformError(Exception):
    """Base for errors caused by the operation data itself. Never retryable."""


class MalformedOperation(TransformError):
    """Raised when an operation carries a negative kind code."""

    def __init__(self, type_code: int, operation_index: int):
        self.type_code = type_code
        self.operation_index = operation_index
        super().__init__(
            f"The operation type ({type_code}) is negative for operation index {operation_index}"
        )

    @property
    def application_order(self) -> int:
        return self.operation_index + 1


class UnsupportedOperationKind(TransformError):
    """Raised when an operation kind code is non-negative but not supported."""

    def __init__(self, type_code: int):
        self.type_code = type_code
        super().__init__(f"Unknown operation type: {type_code}")


class OperationResultMismatch(RuntimeError):
    """The result stored at a position belongs to a different operation kind.

    Indicates the caller paired an operation with the wrong index.
    """

    def __init__(self, index: int, expected: int, actual: int):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Result at position {index} is for operation type {actual}, expected {expected}"
        )


class MissingOperationResult(RuntimeError):
    """An operation needing its execution result was transformed without one."""

    def __init__(self, index: int, type_code: int):
        self.index = index
        self.type_code = type_code
        super().__init__(
            f"No result recorded for operation {index} (type {type_code})"
        )


class LedgerSourceError(Exception):
    """Raised when ledgers in the requested range cannot be retrieved."""

    def __init__(self, message: str, ledger_sequence: int | None = None):
        self.ledger_sequence = ledger_sequence
        if ledger_sequence is not None:
            message = f"{message} (ledger {ledger_sequence})"
        super().__init__(message)
