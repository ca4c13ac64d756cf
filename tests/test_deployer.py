"""
ArtifactDeployer: deploy-or-skip through the deterministic deployer contract.
"""
from __future__ import annotations

import pytest

from crypto_deployer.core.errors import DeploymentSubmissionError, IntegrityError
from crypto_deployer.deploy.address import AddressDeriver, derive_salt
from crypto_deployer.deploy.contracts import DeployerFactory
from crypto_deployer.deploy.deployer import ArtifactDeployer, DeployStatus
from crypto_deployer.deploy.existence import ExistenceChecker
from tests.fakes import DEPLOYER_CONTRACT, SIGNER, FakeLedger

SALT = "factory-v1"
BYTECODE = b"\x60\x80\x60\x40"


def _deployer(fake: FakeLedger) -> ArtifactDeployer:
    return ArtifactDeployer(
        fake,
        DeployerFactory(fake, DEPLOYER_CONTRACT),
        SIGNER,
        ExistenceChecker(fake),
        gas_overrides={"gasPrice": 7},
    )


def _expected() -> str:
    return AddressDeriver().derive_from_salt(DEPLOYER_CONTRACT, SALT)


def test_deploys_when_absent():
    fake = FakeLedger()
    outcome = _deployer(fake).deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    assert outcome.status is DeployStatus.DEPLOYED
    assert outcome.address == _expected()
    assert outcome.tx_hash
    assert fake.sent_methods() == ["deploy(bytes32,bytes)"]
    tx = fake.sent[0]
    assert tx["from"] == SIGNER
    assert tx["gasPrice"] == 7
    assert tx["args"] == (derive_salt(SALT), BYTECODE)


def test_skips_when_code_exists():
    fake = FakeLedger()
    fake.put_contract(_expected())
    outcome = _deployer(fake).deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    assert outcome.status is DeployStatus.SKIPPED
    assert outcome.address == _expected()
    assert fake.sent == []


def test_second_call_skips():
    fake = FakeLedger()
    d = _deployer(fake)
    d.deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    again = d.deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    assert again.status is DeployStatus.SKIPPED
    assert len(fake.sent) == 1


def test_revert_is_failed_outcome():
    fake = FakeLedger()
    fake.fail_next("deploy(bytes32,bytes)", "revert")
    outcome = _deployer(fake).deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    assert outcome.status is DeployStatus.FAILED
    assert not outcome.ok
    assert outcome.address is None
    assert outcome.tx_hash is not None
    assert "reverted" in outcome.error


def test_rejected_submission_raises_from_deploy():
    fake = FakeLedger()
    fake.fail_next("deploy(bytes32,bytes)", "raise")
    with pytest.raises(DeploymentSubmissionError):
        _deployer(fake).deploy(SALT, _expected(), derive_salt(SALT), BYTECODE)


def test_missing_code_after_success_is_integrity_error():
    fake = FakeLedger()
    fake.deploy_lands_elsewhere = True
    with pytest.raises(IntegrityError):
        _deployer(fake).deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)


def test_outcome_as_dict():
    fake = FakeLedger()
    outcome = _deployer(fake).deploy_or_skip("Factory", SALT, _expected(), derive_salt(SALT), BYTECODE)
    d = outcome.as_dict()
    assert d["status"] == "DEPLOYED"
    assert d["name"] == "Factory"
