"""Structured JSON logging for ledger export debugging.

Writes JSON Lines so failed or skipped operations can be replayed later.
"""

from __future__ import annotations

import json
import os
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from hexbytes import HexBytes

from stellar_etl.config import DEBUG_OUTPUT_ENV

if TYPE_CHECKING:
    from stellar_etl.input.transactions import LedgerTransformInput


def _hex(value: HexBytes | bytes | str | None) -> str | None:
    if isinstance(value, bytes):
        return HexBytes(value).to_0x_hex()
    return value


class ExportDebugLogger:
    """Structured debug logger for ledger exports.

    Disabled until configured with an output path. Each entry carries a
    timestamp, an entry type and the network passphrase of the session.
    """

    _instance: ClassVar[ExportDebugLogger | None] = None
    _initialized: bool = False

    def __new__(cls) -> ExportDebugLogger:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._output_path: Path | None = None
        self._file_handle: Any = None
        self._network_passphrase: str | None = None
        self._enabled: bool = False

    def configure(
        self,
        output_path: Path | str | None = None,
        network_passphrase: str | None = None,
    ) -> bool:
        """Configure the debug logger.

        Args:
            output_path: Path to write JSONL debug output. If None, uses the
                STELLAR_ETL_DEBUG_OUTPUT env var; without either, any open
                session is closed and logging is disabled.
            network_passphrase: Network context added to every entry.

        Returns:
            True if logging is enabled, False otherwise
        """
        if output_path is None:
            output_path = os.environ.get(DEBUG_OUTPUT_ENV)

        self.close()
        if not output_path:
            return False

        self._output_path = Path(output_path)
        self._network_passphrase = network_passphrase
        self._enabled = True

        self._output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handle = self._output_path.open("a", buffering=1, encoding="utf-8")

        self._write_entry({
            "type": "session_start",
            "timestamp": datetime.now(tz=UTC).isoformat(),
        })

        return True

    def is_enabled(self) -> bool:
        return self._enabled

    def _write_entry(self, entry: dict[str, Any]) -> None:
        if not self._enabled or self._file_handle is None:
            return

        entry["_network"] = self._network_passphrase

        try:
            self._file_handle.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            sys.stderr.write(f"Failed to write debug log: {e}\n")

    def log_event(
        self,
        *,
        level: str,
        message: str,
        ledger_sequence: int | None = None,
        tx_hash: HexBytes | str | None = None,
        operation_index: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a structured event.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            message: Human-readable message
            ledger_sequence: Ledger for correlation
            tx_hash: Transaction hash for correlation
            operation_index: 0-based operation position for correlation
            context: Additional structured context data
        """
        if not self._enabled:
            return

        self._write_entry({
            "type": "log",
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": level.upper(),
            "message": message,
            "ledger_sequence": ledger_sequence,
            "tx_hash": _hex(tx_hash),
            "operation_index": operation_index,
            "context": context or {},
        })

    def log_ledger_range(
        self,
        *,
        start: int,
        end: int,
        limit: int,
        network_passphrase: str | None = None,
    ) -> None:
        if not self._enabled:
            return

        self._write_entry({
            "type": "ledger_range",
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "start": start,
            "end": end,
            "limit": limit,
            "network_passphrase": network_passphrase,
        })

    def log_exception(
        self,
        *,
        exc: Exception,
        tx_input: LedgerTransformInput | None = None,
        operation_index: int | None = None,
        extra_context: dict[str, Any] | None = None,
    ) -> None:
        """Log an exception with enough context to replay the operation."""
        if not self._enabled:
            return

        entry: dict[str, Any] = {
            "type": "exception",
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
            "operation_index": operation_index,
        }

        if tx_input is not None:
            entry["tx_context"] = self._serialize_tx_input(tx_input)

        if extra_context is not None:
            entry["extra_context"] = extra_context

        self._write_entry(entry)

    def _serialize_tx_input(self, tx_input: LedgerTransformInput) -> dict[str, Any]:
        transaction = tx_input.transaction
        return {
            "ledger_sequence": tx_input.ledger_header.ledger_seq,
            "close_time": tx_input.ledger_header.close_time,
            "tx_hash": _hex(transaction.hash),
            "tx_index": transaction.index,
            "source_account": transaction.source_account.address,
            "operation_count": len(transaction.operations),
            "result_code": int(transaction.result.code),
        }

    def close(self) -> None:
        """Close the debug log file and write session end marker."""
        if not self._enabled or self._file_handle is None:
            return

        self._write_entry({
            "type": "session_end",
            "timestamp": datetime.now(tz=UTC).isoformat(),
        })

        self._file_handle.close()
        self._file_handle = None
        self._output_path = None
        self._enabled = False


# Global instance
debug_logger = ExportDebugLogger()
