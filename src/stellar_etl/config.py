"""Environment configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from stellar_sdk import Network

NETWORK_PASSPHRASE_ENV = "STELLAR_ETL_NETWORK_PASSPHRASE"
DEBUG_OUTPUT_ENV = "STELLAR_ETL_DEBUG_OUTPUT"


@dataclass(frozen=True)
class EnvironmentDetails:
    network_passphrase: str
    debug_output: str | None = None


def get_environment(testnet: bool = False) -> EnvironmentDetails:
    """Build the environment for the public network, or testnet if requested.

    STELLAR_ETL_NETWORK_PASSPHRASE overrides the passphrase, and
    STELLAR_ETL_DEBUG_OUTPUT names the JSONL debug log file.
    """
    default = (
        Network.TESTNET_NETWORK_PASSPHRASE if testnet else Network.PUBLIC_NETWORK_PASSPHRASE
    )
    return EnvironmentDetails(
        network_passphrase=os.environ.get(NETWORK_PASSPHRASE_ENV) or default,
        debug_output=os.environ.get(DEBUG_OUTPUT_ENV) or None,
    )
