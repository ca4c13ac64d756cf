"""
Ledger and explorer access for the deployer.

The JSON-RPC client wraps reads in retry/backoff and a circuit breaker;
transaction submission is single-shot. The verifier talks to an
Etherscan-compatible explorer.
"""

from __future__ import annotations

from .base import LedgerClient, ProviderHealth, ProviderStatus, TxReceipt
from .resilience import CircuitBreaker, CircuitOpenError, RetryConfig, resilient_call
from .rpc import JsonRpcClient, RpcResponseError
from .verifier import EtherscanVerifier, VerificationSource

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "EtherscanVerifier",
    "JsonRpcClient",
    "LedgerClient",
    "ProviderHealth",
    "ProviderStatus",
    "RetryConfig",
    "RpcResponseError",
    "TxReceipt",
    "VerificationSource",
    "resilient_call",
]
