"""
Deployment orchestrator: an ordered pipeline of named steps.

Each step declares its dependencies (artifacts referenced by constructor
arguments or by its lifecycle registry). plan_order() checks that every
dependency precedes its dependant, without touching the network. run() then
executes the steps strictly in sequence, threading one DeploymentRecord
through them:

    resolve args -> derive salt/address -> exists? -> deploy or skip
      -> verify (detached) -> record address -> stake/ownership lifecycle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from eth_utils import from_wei, is_address, to_checksum_address

from ..config import DeploySettings, NetworkProfile, validate_addresses
from ..core.errors import (
    ConfigurationError,
    DeploymentSubmissionError,
    IntegrityError,
    MissingDependencyError,
)
from ..core.record import SOURCE_DEPLOYED, SOURCE_EXISTING, DeploymentRecord
from ..providers.base import LedgerClient
from .address import AddressDeriver, derive_salt
from .artifacts import ARG_LITERAL, ARG_REF, ARG_SETTING, ARG_SIGNER, Artifact
from .contracts import DeployerFactory, StakingRegistry, encode_constructor_args
from .deployer import ArtifactDeployer, DeployOutcome, DeployStatus
from .existence import ExistenceChecker
from .lifecycle import LifecycleReport, StakeLifecycleManager, same_address
from .verification import VerificationNotifier, VerificationResult, Verifier

logger = logging.getLogger(__name__)

SEPARATOR = "========================================="


def format_ether(wei: int) -> str:
    """from_wei rejects negatives; balances can rise between reads on shared dev chains."""
    sign = "-" if wei < 0 else ""
    return f"{sign}{from_wei(abs(wei), 'ether')}"


@dataclass(frozen=True)
class DeployStep:
    """One pipeline stage. resolve_only steps look up an existing address but never deploy."""

    artifact: Artifact
    resolve_only: bool = False

    @property
    def name(self) -> str:
        return self.artifact.name

    @property
    def requires(self) -> tuple[str, ...]:
        return self.artifact.depends_on


def plan_order(artifacts: Iterable[Artifact], only: Optional[Iterable[str]] = None) -> List[DeployStep]:
    """
    Build the step list in declared order.
    Raises ConfigurationError if a dependency is unknown or declared after its dependant,
    or if `only` names an artifact that is not in the plan.
    """
    artifacts = list(artifacts)
    names = [a.name for a in artifacts]
    selected = set(only) if only else None
    if selected is not None:
        unknown = selected.difference(names)
        if unknown:
            raise ConfigurationError(f"Unknown artifact(s) selected: {', '.join(sorted(unknown))}")

    steps: List[DeployStep] = []
    seen: set[str] = set()
    for art in artifacts:
        for dep in art.depends_on:
            if dep not in names:
                raise ConfigurationError(f"{art.name} depends on unknown artifact '{dep}'")
            if dep not in seen:
                raise ConfigurationError(f"{art.name} depends on '{dep}', which is ordered after it")
        steps.append(DeployStep(art, resolve_only=selected is not None and art.name not in selected))
        seen.add(art.name)
    return steps


@dataclass(frozen=True)
class RunContext:
    """Facts established by preflight; fixed for the rest of the run."""

    chain_id: int
    signer: str
    factory_address: str
    profile: NetworkProfile
    addresses: Dict[str, str]
    is_local: bool


@dataclass
class DeploymentReport:
    chain_id: int
    deployer: str
    record: DeploymentRecord
    outcomes: List[DeployOutcome] = field(default_factory=list)
    lifecycle: List[LifecycleReport] = field(default_factory=list)
    verifications: List[VerificationResult] = field(default_factory=list)
    balance_before: int = 0
    balance_after: int = 0

    @property
    def funds_used(self) -> int:
        return self.balance_before - self.balance_after

    @property
    def failed(self) -> List[DeployOutcome]:
        return [o for o in self.outcomes if o.status is DeployStatus.FAILED]

    @property
    def deploy_tx_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeployStatus.DEPLOYED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "deployer": self.deployer,
            "contracts": self.record.as_dict(),
            "outcomes": [o.as_dict() for o in self.outcomes],
            "lifecycle": [r.as_dict() for r in self.lifecycle],
            "verifications": [v.__dict__ for v in self.verifications],
            "balance_before_eth": format_ether(self.balance_before),
            "balance_after_eth": format_ether(self.balance_after),
            "funds_used_eth": format_ether(self.funds_used),
        }


class DeploymentOrchestrator:
    """Top-level sequencer. One artifact is fully resolved, lifecycle included, before the next."""

    def __init__(
        self,
        settings: DeploySettings,
        client: LedgerClient,
        artifacts: List[Artifact],
        verifier: Optional[Verifier] = None,
        deriver: Optional[AddressDeriver] = None,
        only: Optional[Iterable[str]] = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.artifacts = list(artifacts)
        self.verifier = verifier
        self.deriver = deriver or AddressDeriver()
        self.only = list(only) if only else None
        self.existence = ExistenceChecker(client)

    # ------------------------------------------------------------------
    # preflight
    # ------------------------------------------------------------------

    def _resolve_signer(self) -> str:
        if self.settings.deployer_address:
            return to_checksum_address(self.settings.deployer_address)
        accounts = self.client.accounts()
        if not accounts:
            raise ConfigurationError("Node exposes no accounts; set DEPLOYER_ADDRESS")
        return to_checksum_address(accounts[0])

    def preflight(self) -> tuple[RunContext, List[DeployStep]]:
        """
        Validate configuration before any transaction.
        Address and plan checks run before any network call; chain profile,
        stake profiles and the deployer contract are checked next.
        """
        addresses = validate_addresses(self.settings)
        steps = plan_order(self.artifacts, self.only)

        chain_id = self.client.chain_id()
        profile = self.settings.network_profile(chain_id)
        for step in steps:
            lc = step.artifact.lifecycle
            if lc is not None and not step.resolve_only:
                profile.stake_profile(lc.stake_profile)

        signer = self._resolve_signer()
        factory_address = addresses["deployer_contract"]
        if not self.existence.exists(factory_address):
            raise ConfigurationError(
                f"Deployer not deployed on chain {chain_id} at {factory_address}; "
                "deploy the deployer contract before using this tool"
            )
        logger.info("Deploying with EOA %s through Deployer Contract %s", signer, factory_address)
        ctx = RunContext(
            chain_id=chain_id,
            signer=signer,
            factory_address=factory_address,
            profile=profile,
            addresses=addresses,
            is_local=self.settings.is_local_chain(chain_id),
        )
        return ctx, steps

    # ------------------------------------------------------------------
    # per-step work
    # ------------------------------------------------------------------

    def resolve_args(self, artifact: Artifact, record: DeploymentRecord, ctx: RunContext) -> List[Any]:
        values: List[Any] = []
        for arg in artifact.constructor:
            if arg.kind == ARG_REF:
                address = record.get(arg.value)
                if not address:
                    raise MissingDependencyError(artifact.name, arg.value)
                values.append(address)
            elif arg.kind == ARG_SIGNER:
                values.append(ctx.signer)
            elif arg.kind == ARG_SETTING:
                values.append(ctx.addresses.get(arg.value) or self.settings.address(arg.value))
            elif arg.kind == ARG_LITERAL:
                value = arg.value
                if arg.abi_type == "address":
                    if not is_address(value):
                        raise ConfigurationError(f"{artifact.name}: malformed address literal {value!r}")
                    value = to_checksum_address(value)
                values.append(value)
            else:
                raise ConfigurationError(f"{artifact.name}: unknown argument kind {arg.kind!r}")
        return values

    def _seed_external(self, step: DeployStep, record: DeploymentRecord, ctx: RunContext) -> None:
        art = step.artifact
        address = ctx.addresses.get(art.address_setting or "") if art.address_setting else None
        if not address:
            raise ConfigurationError(f"{art.name} is local-only and no address is configured for chain {ctx.chain_id}")
        if not self.existence.exists(address):
            raise ConfigurationError(f"{art.name} not found at configured address {address} on chain {ctx.chain_id}")
        logger.info("%s already deployed at configured address %s", art.name, address)
        record.seed(art.name, address)

    def _derive(self, art: Artifact, factory: DeployerFactory) -> tuple[bytes, str]:
        derived_salt = derive_salt(art.salt)
        expected = self.deriver.derive(factory.address, derived_salt)
        reported = factory.address_of(derived_salt)
        if not same_address(expected, reported):
            raise IntegrityError(
                f"{art.name}: local derivation {expected} disagrees with factory addressOf {reported}"
            )
        logger.info("%s Computed Address: %s", art.name, expected)
        return derived_salt, expected

    def _run_step(
        self,
        step: DeployStep,
        record: DeploymentRecord,
        report: DeploymentReport,
        ctx: RunContext,
        factory: DeployerFactory,
        deployer: ArtifactDeployer,
        notifier: VerificationNotifier,
        lifecycle: StakeLifecycleManager,
    ) -> None:
        art = step.artifact
        if art.local_only and not ctx.is_local:
            self._seed_external(step, record, ctx)
            return

        args = self.resolve_args(art, record, ctx)
        derived_salt, expected = self._derive(art, factory)

        if step.resolve_only:
            if self.existence.exists(expected):
                record.set(art.name, expected, source=SOURCE_EXISTING)
            else:
                logger.warning("%s not selected and not deployed at %s", art.name, expected)
            return

        init_code = art.bytecode + encode_constructor_args(art.constructor_types, args)
        outcome = deployer.deploy_or_skip(art.name, art.salt, expected, derived_salt, init_code)
        report.outcomes.append(outcome)
        if outcome.status is DeployStatus.FAILED:
            if self.settings.on_deploy_failure == "abort":
                raise DeploymentSubmissionError(outcome.error or f"{art.name} deployment failed", outcome.tx_hash)
            logger.error("Continuing past failed artifact %s; no address recorded", art.name)
            return

        notifier.verify(
            art.name,
            outcome.address,  # type: ignore[arg-type]
            art.constructor_types,
            args,
            load_source=art.compiled.verification_source if art.compiled else None,
        )
        source = SOURCE_DEPLOYED if outcome.status is DeployStatus.DEPLOYED else SOURCE_EXISTING
        record.set(art.name, outcome.address, source=source)  # type: ignore[arg-type]

        lc = art.lifecycle
        if lc is None:
            return
        registry_address = record.get(lc.registry)
        if not registry_address:
            raise MissingDependencyError(art.name, lc.registry)
        report.lifecycle.append(
            lifecycle.run(
                art.name,
                outcome.address,  # type: ignore[arg-type]
                StakingRegistry(self.client, registry_address),
                lc.stake_signature,
                ctx.profile.stake_profile(lc.stake_profile),
                ctx.addresses.get(lc.owner_setting) or self.settings.address(lc.owner_setting),
            )
        )

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------

    def run(self) -> DeploymentReport:
        ctx, steps = self.preflight()

        logger.info(SEPARATOR)
        for name, address in ctx.addresses.items():
            logger.info("%s: %s", name, address)
        balance_before = self.client.get_balance(ctx.signer)
        logger.info("Deployer %s initial balance: %s", ctx.signer, format_ether(balance_before))
        logger.info(SEPARATOR)

        record = DeploymentRecord()
        report = DeploymentReport(
            chain_id=ctx.chain_id, deployer=ctx.signer, record=record, balance_before=balance_before
        )
        factory = DeployerFactory(self.client, ctx.factory_address)
        deployer = ArtifactDeployer(
            self.client,
            factory,
            ctx.signer,
            self.existence,
            gas_overrides=ctx.profile.gas,
            receipt_timeout_s=self.settings.receipt_timeout_s,
        )
        lifecycle = StakeLifecycleManager(
            self.client,
            ctx.signer,
            gas_overrides=ctx.profile.gas,
            receipt_timeout_s=self.settings.receipt_timeout_s,
        )
        notifier = VerificationNotifier(self.verifier)
        try:
            for step in steps:
                self._run_step(step, record, report, ctx, factory, deployer, notifier, lifecycle)
                logger.info(SEPARATOR)
        finally:
            report.verifications = notifier.drain(self.settings.verification.drain_timeout_s)
            notifier.close()

        report.balance_after = self.client.get_balance(ctx.signer)
        logger.info("Deployed Contracts: %s", record.as_dict())
        logger.info("Deployer %s final balance: %s", ctx.signer, format_ether(report.balance_after))
        logger.info("Funds used: %s", format_ether(report.funds_used))
        return report
