"""
Stake and ownership lifecycle for registry-participant artifacts.

State is never persisted: every run re-reads stake status and owner from the
ledger and drives them toward the configured target.

    UNSTAKED --addStake--> STAKED --(owner == target)--> OWNERSHIP_TRANSFERRED
                             |
                             +--transferOwnership--> OWNERSHIP_PENDING --> OWNERSHIP_TRANSFERRED

An artifact owned by someone other than the deployer is left alone
(SKIPPED_NOT_OWNER). Transaction failures raise LifecycleTransactionError.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import StakeProfile
from ..core.errors import LifecycleTransactionError, TransactionError
from ..providers.base import LedgerClient
from .contracts import Ownable, StakeStatus, StakingRegistry, stake_calldata

logger = logging.getLogger(__name__)


class LifecycleState(enum.Enum):
    UNSTAKED = "UNSTAKED"
    STAKED = "STAKED"
    OWNERSHIP_PENDING = "OWNERSHIP_PENDING"
    OWNERSHIP_TRANSFERRED = "OWNERSHIP_TRANSFERRED"
    SKIPPED_NOT_OWNER = "SKIPPED_NOT_OWNER"


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()  # type: ignore[union-attr]


@dataclass
class LifecycleReport:
    name: str
    address: str
    states: List[LifecycleState] = field(default_factory=list)
    stake_tx: Optional[str] = None
    transfer_tx: Optional[str] = None
    stake_before: Optional[StakeStatus] = None
    stake_after: Optional[StakeStatus] = None
    owner_after: Optional[str] = None

    @property
    def final_state(self) -> Optional[LifecycleState]:
        return self.states[-1] if self.states else None

    def enter(self, state: LifecycleState) -> None:
        logger.debug("%s lifecycle -> %s", self.name, state.value)
        self.states.append(state)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "address": self.address,
            "states": [s.value for s in self.states],
            "stake_tx": self.stake_tx,
            "transfer_tx": self.transfer_tx,
            "stake_after": self.stake_after.as_dict() if self.stake_after else None,
            "owner_after": self.owner_after,
        }


class StakeLifecycleManager:
    """Drives one artifact's stake and ownership toward the configured target."""

    def __init__(
        self,
        client: LedgerClient,
        signer: str,
        gas_overrides: Optional[Dict[str, int]] = None,
        receipt_timeout_s: float = 180.0,
    ) -> None:
        self._client = client
        self._signer = signer
        self._gas = dict(gas_overrides or {})
        self._receipt_timeout_s = receipt_timeout_s

    def _transact(self, what: str, to: str, data: bytes, value: int = 0) -> str:
        tx = {"from": self._signer, "to": to, "data": data, **self._gas}
        if value:
            tx["value"] = value
        tx_hash: Optional[str] = None
        try:
            tx_hash = self._client.send_transaction(tx)
            logger.info("%s transaction hash: %s", what, tx_hash)
            receipt = self._client.wait_for_receipt(tx_hash, timeout_s=self._receipt_timeout_s)
        except TransactionError as exc:
            raise LifecycleTransactionError(f"{what} failed: {exc}", tx_hash=exc.tx_hash or tx_hash) from exc
        if not receipt.succeeded:
            raise LifecycleTransactionError(f"{what} reverted in {tx_hash}", tx_hash=tx_hash)
        return tx_hash

    def run(
        self,
        name: str,
        address: str,
        registry: StakingRegistry,
        stake_signature: str,
        stake: StakeProfile,
        target_owner: str,
    ) -> LifecycleReport:
        report = LifecycleReport(name=name, address=address)
        ownable = Ownable(self._client, address)

        logger.info("Checking if %s is staked...", name)
        status = registry.deposit_info(address)
        report.stake_before = status
        logger.info("Current %s stake: %s", name, json.dumps(status.as_dict()))

        if status.staked:
            logger.info("%s already staked", name)
            report.stake_after = status
            report.enter(LifecycleState.STAKED)
        else:
            report.enter(LifecycleState.UNSTAKED)
            owner = ownable.owner()
            if not same_address(owner, self._signer):
                logger.info("%s is owned by %s, not the deployer; skipping staking", name, owner)
                report.owner_after = owner
                report.enter(LifecycleState.SKIPPED_NOT_OWNER)
                return report

            logger.info(
                "Staking %s: %d wei, unstake delay %ds", name, stake.stake_wei, stake.unstake_delay_sec
            )
            data, _ = stake_calldata(stake_signature, registry.address, stake.unstake_delay_sec)
            report.stake_tx = self._transact(f"{name} stake", address, data, value=stake.stake_wei)

            status = registry.deposit_info(address)
            report.stake_after = status
            logger.info("Updated %s stake: %s", name, json.dumps(status.as_dict()))
            if not status.staked:
                raise LifecycleTransactionError(
                    f"{name} stake tx {report.stake_tx} included but registry reports not staked",
                    tx_hash=report.stake_tx,
                )
            report.enter(LifecycleState.STAKED)

        owner = ownable.owner()
        if same_address(owner, target_owner):
            report.owner_after = owner
            report.enter(LifecycleState.OWNERSHIP_TRANSFERRED)
            return report
        if not same_address(owner, self._signer):
            logger.warning(
                "%s is owned by %s (target %s); deployer cannot transfer ownership", name, owner, target_owner
            )
            report.owner_after = owner
            report.enter(LifecycleState.SKIPPED_NOT_OWNER)
            return report

        report.enter(LifecycleState.OWNERSHIP_PENDING)
        logger.info("Transferring ownership of %s to %s...", name, target_owner)
        report.transfer_tx = self._transact(
            f"{name} transfer ownership", address, ownable.transfer_ownership_calldata(target_owner)
        )
        owner = ownable.owner()
        report.owner_after = owner
        if not same_address(owner, target_owner):
            raise LifecycleTransactionError(
                f"{name} ownership transfer {report.transfer_tx} included but owner is still {owner}",
                tx_hash=report.transfer_tx,
            )
        report.enter(LifecycleState.OWNERSHIP_TRANSFERRED)
        return report
