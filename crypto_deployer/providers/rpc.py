"""
JSON-RPC ledger client over HTTP.

Speaks the standard eth_* methods against a node that manages the signing
account (Hardhat, Anvil, or an unlocked geth account):
  eth_chainId, eth_getCode, eth_getBalance, eth_call, eth_accounts,
  eth_sendTransaction, eth_getTransactionReceipt
"""
from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Dict, List, Optional

import requests
from eth_utils import to_bytes, to_checksum_address, to_hex, to_int

from ..core.errors import NetworkError, TransactionError
from .base import ProviderHealth, TxReceipt
from .resilience import CircuitBreaker, CircuitOpenError, RetryConfig, resilient_call

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_S = 30.0
RECEIPT_POLL_S = 1.0


class TransientRpcError(RuntimeError):
    """Transport-level failure worth retrying (connection, timeout, 429/5xx)."""


class RpcResponseError(NetworkError):
    """Node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data: Any = None) -> None:
        super().__init__(f"{method} failed: [{code}] {message}")
        self.method = method
        self.code = code
        self.data = data


def _hex_to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    return to_int(hexstr=value)


class JsonRpcClient:
    """LedgerClient implementation over HTTP JSON-RPC."""

    def __init__(
        self,
        url: str,
        retry_config: Optional[RetryConfig] = None,
        timeout_s: float = HTTP_TIMEOUT_S,
        session: Optional[requests.Session] = None,
        receipt_poll_s: float = RECEIPT_POLL_S,
    ) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._session = session or requests.Session()
        self._retry_config = retry_config or RetryConfig(retry_on=(TransientRpcError,))
        self._breaker = CircuitBreaker(provider_name=self.provider_name)
        self._health = ProviderHealth(provider_name=self.provider_name)
        self._ids = itertools.count(1)
        self._receipt_poll_s = receipt_poll_s

    @property
    def provider_name(self) -> str:
        return f"jsonrpc:{self._url}"

    @property
    def health(self) -> ProviderHealth:
        return self._health

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _post(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self._session.post(self._url, json=payload, timeout=self._timeout_s)
        except requests.RequestException as exc:
            raise TransientRpcError(f"{method}: {type(exc).__name__}: {exc}") from exc
        if resp.status_code in self._retry_config.retry_on_status_codes:
            raise TransientRpcError(f"{method}: HTTP {resp.status_code}")
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.HTTPError, ValueError) as exc:
            raise NetworkError(f"{method}: bad response from {self._url}: {exc}") from exc

        err = data.get("error") if isinstance(data, dict) else None
        if err:
            raise RpcResponseError(method, err.get("code"), str(err.get("message", "")), err.get("data"))
        if not isinstance(data, dict) or "result" not in data:
            raise NetworkError(f"{method}: response missing result")
        return data["result"]

    def _read(self, method: str, params: List[Any]) -> Any:
        """Retried, breaker-protected read. Transport failures surface as NetworkError."""
        try:
            result = resilient_call(
                self._post,
                method,
                params,
                retry_config=self._retry_config,
                circuit_breaker=self._breaker,
            )
        except (TransientRpcError, CircuitOpenError) as exc:
            self._health.record_failure(str(exc))
            raise NetworkError(f"{method} unavailable at {self._url}: {exc}") from exc
        self._health.record_success()
        return result

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def chain_id(self) -> int:
        return to_int(hexstr=self._read("eth_chainId", []))

    def get_code(self, address: str) -> bytes:
        code = self._read("eth_getCode", [to_checksum_address(address), "latest"])
        return to_bytes(hexstr=code or "0x")

    def get_balance(self, address: str) -> int:
        return to_int(hexstr=self._read("eth_getBalance", [to_checksum_address(address), "latest"]))

    def call(self, to: str, data: bytes) -> bytes:
        result = self._read("eth_call", [{"to": to_checksum_address(to), "data": to_hex(data)}, "latest"])
        return to_bytes(hexstr=result or "0x")

    def accounts(self) -> List[str]:
        return [to_checksum_address(a) for a in self._read("eth_accounts", []) or []]

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        """Single attempt; never retried."""
        params = {k: (to_hex(v) if isinstance(v, (int, bytes)) else v) for k, v in tx.items()}
        try:
            tx_hash = self._post("eth_sendTransaction", [params])
        except (TransientRpcError, NetworkError) as exc:
            raise TransactionError(f"eth_sendTransaction rejected: {exc}") from exc
        logger.debug("Submitted tx %s", tx_hash)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout_s: float = 120.0) -> TxReceipt:
        deadline = time.monotonic() + timeout_s
        while True:
            raw = self._read("eth_getTransactionReceipt", [tx_hash])
            if raw:
                contract = raw.get("contractAddress")
                return TxReceipt(
                    tx_hash=tx_hash,
                    status=_hex_to_int(raw.get("status")) or 0,
                    block_number=_hex_to_int(raw.get("blockNumber")),
                    gas_used=_hex_to_int(raw.get("gasUsed")),
                    contract_address=to_checksum_address(contract) if contract else None,
                )
            if time.monotonic() >= deadline:
                raise TransactionError(f"{tx_hash} not included within {timeout_s:.0f}s", tx_hash=tx_hash)
            time.sleep(self._receipt_poll_s)
