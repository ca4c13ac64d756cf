"""
Deploy-or-skip through the shared deterministic deployer contract.

deploy() submits exactly one transaction and confirms the artifact landed at
the pre-computed address. deploy_or_skip() wraps it in an explicit result
type: callers branch on DeployOutcome.status instead of testing for an empty
address.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import DeploymentSubmissionError, IntegrityError, TransactionError
from ..providers.base import LedgerClient
from .contracts import DeployerFactory
from .existence import ExistenceChecker

logger = logging.getLogger(__name__)


class DeployStatus(enum.Enum):
    DEPLOYED = "DEPLOYED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DeployOutcome:
    """Result of deploy-or-skip for one artifact."""

    name: str
    status: DeployStatus
    address: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (DeployStatus.DEPLOYED, DeployStatus.SKIPPED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "address": self.address,
            "tx_hash": self.tx_hash,
            "error": self.error,
        }


class ArtifactDeployer:
    """Submits deploy(bytes32,bytes) to the factory and confirms the result."""

    def __init__(
        self,
        client: LedgerClient,
        factory: DeployerFactory,
        signer: str,
        existence: ExistenceChecker,
        gas_overrides: Optional[Dict[str, int]] = None,
        receipt_timeout_s: float = 180.0,
    ) -> None:
        self._client = client
        self._factory = factory
        self._signer = signer
        self._existence = existence
        self._gas = dict(gas_overrides or {})
        self._receipt_timeout_s = receipt_timeout_s
        self.last_tx_hash: Optional[str] = None

    def deploy(self, salt: str, expected_address: str, derived_salt: bytes, bytecode: bytes) -> str:
        tx = {
            "from": self._signer,
            "to": self._factory.address,
            "data": self._factory.deploy_calldata(derived_salt, bytecode),
            **self._gas,
        }
        logger.info("Deploying salt %r to %s", salt, expected_address)
        self.last_tx_hash = None
        try:
            tx_hash = self._client.send_transaction(tx)
            self.last_tx_hash = tx_hash
            receipt = self._client.wait_for_receipt(tx_hash, timeout_s=self._receipt_timeout_s)
        except TransactionError as exc:
            raise DeploymentSubmissionError(
                f"Deploy of {salt!r} failed: {exc}", tx_hash=exc.tx_hash or self.last_tx_hash
            ) from exc
        if not receipt.succeeded:
            raise DeploymentSubmissionError(f"Deploy of {salt!r} reverted in {tx_hash}", tx_hash=tx_hash)
        logger.info("Deploy tx %s included in block %s", tx_hash, receipt.block_number)

        if not self._existence.exists(expected_address):
            raise IntegrityError(
                f"Deploy tx {tx_hash} succeeded but {expected_address} has no code; "
                "factory and local address derivation disagree"
            )
        return expected_address

    def deploy_or_skip(
        self,
        name: str,
        salt: str,
        expected_address: str,
        derived_salt: bytes,
        bytecode: bytes,
    ) -> DeployOutcome:
        """
        Deploy only when no code exists at expected_address.
        Submission failures become FAILED outcomes; integrity and network
        errors propagate.
        """
        if self._existence.exists(expected_address):
            logger.info("%s is already deployed at %s", name, expected_address)
            return DeployOutcome(name=name, status=DeployStatus.SKIPPED, address=expected_address)
        try:
            address = self.deploy(salt, expected_address, derived_salt, bytecode)
        except DeploymentSubmissionError as exc:
            logger.error("%s deployment failed: %s", name, exc)
            return DeployOutcome(name=name, status=DeployStatus.FAILED, tx_hash=exc.tx_hash, error=str(exc))
        return DeployOutcome(name=name, status=DeployStatus.DEPLOYED, address=address, tx_hash=self.last_tx_hash)
