"""
Deterministic deployment: address derivation, deploy-or-skip, stake and
ownership lifecycle, and the orchestrating pipeline.
"""

from __future__ import annotations

from .address import AddressDeriver, create2_address, derive_salt
from .artifacts import Artifact, ArtifactStore, ArgSpec, LifecycleSpec, build_plan
from .deployer import ArtifactDeployer, DeployOutcome, DeployStatus
from .existence import ExistenceChecker
from .lifecycle import LifecycleReport, LifecycleState, StakeLifecycleManager
from .orchestrator import DeploymentOrchestrator, DeploymentReport, DeployStep, plan_order
from .verification import VerificationNotifier, VerificationResult

__all__ = [
    "AddressDeriver",
    "ArgSpec",
    "Artifact",
    "ArtifactDeployer",
    "ArtifactStore",
    "DeployOutcome",
    "DeployStatus",
    "DeployStep",
    "DeploymentOrchestrator",
    "DeploymentReport",
    "ExistenceChecker",
    "LifecycleReport",
    "LifecycleSpec",
    "LifecycleState",
    "StakeLifecycleManager",
    "VerificationNotifier",
    "VerificationResult",
    "build_plan",
    "create2_address",
    "derive_salt",
    "plan_order",
]
