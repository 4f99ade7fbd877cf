"""Resolve the inner result of a single operation from its transaction result."""

from __future__ import annotations

from collections.abc import Sequence

from stellar_etl.exceptions import OperationResultMismatch
from stellar_etl.ledger.types import (
    InnerOperationResult,
    LedgerTransaction,
    OperationResult,
    OperationResultCode,
    OperationType,
    PathPaymentStrictReceiveResult,
    PathPaymentStrictSendResult,
)


def get_operation_result(
    results: Sequence[OperationResult] | None,
    index: int,
    operation_type: OperationType,
    result_class: type | None = None,
) -> InnerOperationResult | None:
    """Return the inner result recorded at `index`, or None if there is none.

    Args:
        results: The transaction's per-operation results, positionally aligned
            with its operations. None when the operations never ran.
        index: 0-based position of the operation within the transaction.
        operation_type: Kind of the operation at that position.
        result_class: Expected inner result type, if the caller needs it narrowed.

    Raises:
        OperationResultMismatch: the stored inner result belongs to another kind.
    """
    if results is None or index < 0 or index >= len(results):
        return None

    outcome = results[index]
    if outcome.code != OperationResultCode.OP_INNER or outcome.tr is None:
        return None

    if outcome.tr.type != operation_type:
        raise OperationResultMismatch(index, int(operation_type), int(outcome.tr.type))
    if result_class is not None and not isinstance(outcome.tr.result, result_class):
        raise OperationResultMismatch(index, int(operation_type), int(outcome.tr.type))

    return outcome.tr.result


def get_path_payment_strict_receive_result(
    transaction: LedgerTransaction, index: int
) -> PathPaymentStrictReceiveResult | None:
    return get_operation_result(
        transaction.result.results,
        index,
        OperationType.PATH_PAYMENT_STRICT_RECEIVE,
        PathPaymentStrictReceiveResult,
    )


def get_path_payment_strict_send_result(
    transaction: LedgerTransaction, index: int
) -> PathPaymentStrictSendResult | None:
    return get_operation_result(
        transaction.result.results,
        index,
        OperationType.PATH_PAYMENT_STRICT_SEND,
        PathPaymentStrictSendResult,
    )
