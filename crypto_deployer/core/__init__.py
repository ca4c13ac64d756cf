"""
Stable facade: error taxonomy and the write-once deployment record.
Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    ConfigurationError,
    CryptoDeployerError,
    DeploymentSubmissionError,
    IntegrityError,
    LifecycleTransactionError,
    MissingDependencyError,
    NetworkError,
    RecordConflictError,
    TransactionError,
    VerificationError,
)
from .record import DeploymentRecord

# Do not add exports without updating __all__.
__all__ = [
    "ConfigurationError",
    "CryptoDeployerError",
    "DeploymentRecord",
    "DeploymentSubmissionError",
    "IntegrityError",
    "LifecycleTransactionError",
    "MissingDependencyError",
    "NetworkError",
    "RecordConflictError",
    "TransactionError",
    "VerificationError",
]
