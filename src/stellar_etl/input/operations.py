"""Export operations for a ledger range as flat records."""

from __future__ import annotations

from stellar_etl.config import EnvironmentDetails
from stellar_etl.debug_logger import debug_logger
from stellar_etl.exceptions import TransformError
from stellar_etl.input.transactions import (
    LedgerBackend,
    get_transactions,
    iter_operation_inputs,
)
from stellar_etl.transform.operation import OperationOutput, transform_operation


def export_operations(
    start: int,
    end: int,
    limit: int,
    backend: LedgerBackend,
    *,
    env: EnvironmentDetails | None = None,
    strict: bool = True,
) -> list[OperationOutput]:
    """Transform every operation of the transactions in ledgers `start`-`end`.

    `limit` caps the number of transactions read, as in get_transactions.
    With `strict`, a malformed or unsupported operation aborts the export;
    otherwise it is logged and skipped.
    """
    outputs: list[OperationOutput] = []
    skipped = 0

    for operation, index, tx_input in iter_operation_inputs(
        get_transactions(start, end, limit, backend, env)
    ):
        try:
            outputs.append(transform_operation(operation, index, tx_input.transaction))
        except TransformError as e:
            if strict:
                raise
            skipped += 1
            debug_logger.log_exception(exc=e, tx_input=tx_input, operation_index=index)

    if skipped:
        debug_logger.log_event(
            level="WARNING",
            message=f"Skipped {skipped} operations that could not be transformed",
            context={"start": start, "end": end, "exported": len(outputs)},
        )

    return outputs
