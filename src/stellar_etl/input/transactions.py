"""Ledger source: read transactions for a bounded range of ledgers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol

from stellar_etl.config import EnvironmentDetails
from stellar_etl.debug_logger import debug_logger
from stellar_etl.exceptions import LedgerSourceError
from stellar_etl.ledger.types import (
    LedgerCloseMeta,
    LedgerHeader,
    LedgerTransaction,
    Operation,
)


class LedgerBackend(Protocol):
    """Anything that can replay closed ledgers."""

    def prepare_range(self, start: int, end: int) -> None: ...

    def get_ledger(self, sequence: int) -> LedgerCloseMeta: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class LedgerTransformInput:
    """A transaction together with the ledger it closed in."""

    transaction: LedgerTransaction
    ledger_header: LedgerHeader
    ledger_close_meta: LedgerCloseMeta


class InMemoryLedgerBackend:
    """Serves ledgers from memory. Used for fixtures and offline replays."""

    def __init__(self, ledgers: Iterable[LedgerCloseMeta]):
        self._ledgers = {ledger.ledger_sequence: ledger for ledger in ledgers}
        self._prepared: tuple[int, int] | None = None

    def prepare_range(self, start: int, end: int) -> None:
        missing = [seq for seq in range(start, end + 1) if seq not in self._ledgers]
        if missing:
            msg = f"Ledgers {missing[0]}-{missing[-1]} are not available"
            raise LedgerSourceError(msg)
        self._prepared = (start, end)

    def get_ledger(self, sequence: int) -> LedgerCloseMeta:
        if self._prepared is None:
            msg = "Range not prepared"
            raise LedgerSourceError(msg, sequence)
        start, end = self._prepared
        if not start <= sequence <= end:
            msg = f"Ledger outside prepared range {start}-{end}"
            raise LedgerSourceError(msg, sequence)
        return self._ledgers[sequence]

    def close(self) -> None:
        self._prepared = None


def get_transactions(
    start: int,
    end: int,
    limit: int,
    backend: LedgerBackend,
    env: EnvironmentDetails | None = None,
) -> list[LedgerTransformInput]:
    """Return the transactions of ledgers `start` through `end`, inclusive.

    Args:
        start: First ledger sequence.
        end: Last ledger sequence.
        limit: Maximum number of transactions to return; negative means no limit.
        backend: Source of closed ledgers.
        env: Network context recorded in the debug log.

    Raises:
        ValueError: `start` is after `end`.
        LedgerSourceError: the range could not be prepared or a ledger could not be read.
    """
    if start > end:
        msg = f"Start ledger {start} is after end ledger {end}"
        raise ValueError(msg)

    debug_logger.log_ledger_range(
        start=start,
        end=end,
        limit=limit,
        network_passphrase=env.network_passphrase if env is not None else None,
    )

    transactions: list[LedgerTransformInput] = []
    try:
        try:
            backend.prepare_range(start, end)
        except LedgerSourceError:
            raise
        except Exception as e:
            msg = f"Error preparing range {start}-{end}"
            raise LedgerSourceError(msg) from e

        for sequence in range(start, end + 1):
            try:
                ledger = backend.get_ledger(sequence)
            except LedgerSourceError:
                raise
            except Exception as e:
                msg = "Error getting ledger from the backend"
                raise LedgerSourceError(msg, sequence) from e

            for transaction in ledger.transactions:
                if 0 <= limit <= len(transactions):
                    break
                transactions.append(
                    LedgerTransformInput(
                        transaction=transaction,
                        ledger_header=ledger.header,
                        ledger_close_meta=ledger,
                    )
                )

            if 0 <= limit <= len(transactions):
                break
    finally:
        backend.close()

    return transactions


def iter_operation_inputs(
    transactions: Iterable[LedgerTransformInput],
) -> Iterator[tuple[Operation, int, LedgerTransformInput]]:
    """Yield (operation, index, transaction input) in ledger, transaction, operation order."""
    for tx_input in transactions:
        for index, operation in enumerate(tx_input.transaction.operations):
            yield operation, index, tx_input
