"""
Shared exception types for crypto_deployer.
Fatal vs non-fatal is decided by the orchestrator and CLI, not here.
"""

from __future__ import annotations

from typing import Optional


class CryptoDeployerError(Exception):
    """Base exception for crypto_deployer; catch this for any package-raised error."""

    pass


class ConfigurationError(CryptoDeployerError):
    """Malformed address, missing network/stake profile, bad plan. Raised before any transaction."""

    pass


class MissingDependencyError(ConfigurationError):
    """A constructor argument references an artifact with no resolved address."""

    def __init__(self, artifact: str, dependency: str) -> None:
        super().__init__(f"{artifact}: dependency '{dependency}' has no resolved address")
        self.artifact = artifact
        self.dependency = dependency


class NetworkError(CryptoDeployerError):
    """RPC read failed. Never to be read as 'artifact absent'."""

    pass


class TransactionError(CryptoDeployerError):
    """A submitted transaction failed, reverted, or was never included."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class DeploymentSubmissionError(TransactionError):
    """Deploy transaction through the factory failed or reverted."""

    pass


class LifecycleTransactionError(TransactionError):
    """Stake or ownership-transfer transaction failed. Always fatal."""

    pass


class VerificationError(CryptoDeployerError):
    """Source verification failed. Logged only."""

    pass


class IntegrityError(CryptoDeployerError):
    """Deployed or factory-reported address disagrees with the locally derived one."""

    pass


class RecordConflictError(CryptoDeployerError):
    """Attempt to overwrite an entry of the write-once deployment record."""

    pass


__all__ = [
    "ConfigurationError",
    "CryptoDeployerError",
    "DeploymentSubmissionError",
    "IntegrityError",
    "LifecycleTransactionError",
    "MissingDependencyError",
    "NetworkError",
    "RecordConflictError",
    "TransactionError",
    "VerificationError",
]
