"""Fake ledger, verifier and plan fixtures for deployer tests (no live network)."""

from .ledger import (
    DEPLOYER_CONTRACT,
    ENTRY_POINT,
    FACTORY_OWNER,
    PAYMASTER_OWNER,
    PAYMASTER_SIGNER,
    SIGNER,
    STRANGER,
    FakeLedger,
    RecordingVerifier,
)
from .plan import FakeArtifactStore, make_artifacts, make_config, make_settings

__all__ = [
    "DEPLOYER_CONTRACT",
    "ENTRY_POINT",
    "FACTORY_OWNER",
    "FakeArtifactStore",
    "FakeLedger",
    "PAYMASTER_OWNER",
    "PAYMASTER_SIGNER",
    "RecordingVerifier",
    "SIGNER",
    "STRANGER",
    "make_artifacts",
    "make_config",
    "make_settings",
]
