"""
Ledger client interface and data contracts.

The orchestrator only talks to the ledger through LedgerClient. The JSON-RPC
implementation lives in rpc.py; tests use an in-memory fake.

Receipts are returned as frozen dataclasses.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


class ProviderStatus(enum.Enum):
    """Health status of a ledger endpoint."""

    OK = "OK"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


@dataclass(frozen=True)
class TxReceipt:
    """Inclusion receipt for a submitted transaction."""

    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    contract_address: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class ProviderHealth:
    """Mutable health state for a single endpoint."""

    provider_name: str
    status: ProviderStatus = ProviderStatus.OK
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None

    def record_success(self) -> None:
        self.status = ProviderStatus.OK
        self.fail_count = 0
        self.last_ok_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.fail_count += 1
        self.last_error = error[:500]
        if self.fail_count >= 5:
            self.status = ProviderStatus.DOWN
        elif self.fail_count >= 2:
            self.status = ProviderStatus.DEGRADED


@runtime_checkable
class LedgerClient(Protocol):
    """Protocol for ledger access: reads, transaction submission, inclusion wait."""

    @property
    def provider_name(self) -> str: ...

    def chain_id(self) -> int: ...

    def get_code(self, address: str) -> bytes:
        """Runtime code at address ('latest'); empty bytes when none."""
        ...

    def get_balance(self, address: str) -> int: ...

    def call(self, to: str, data: bytes) -> bytes:
        """eth_call against 'latest'; returns raw return data."""
        ...

    def accounts(self) -> List[str]: ...

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        """Submit a transaction from a node-managed account. Returns the tx hash."""
        ...

    def wait_for_receipt(self, tx_hash: str, timeout_s: float = 120.0) -> TxReceipt:
        """Block until the transaction is included; raise on timeout."""
        ...
