"""ExistenceChecker: code length decides; RPC failures are never read as 'absent'."""
from __future__ import annotations

import pytest

from crypto_deployer.core.errors import NetworkError
from crypto_deployer.deploy.existence import ExistenceChecker
from tests.fakes import DEPLOYER_CONTRACT, STRANGER, FakeLedger


def test_exists_when_code_present():
    assert ExistenceChecker(FakeLedger()).exists(DEPLOYER_CONTRACT) is True


def test_absent_when_no_code():
    assert ExistenceChecker(FakeLedger()).exists(STRANGER) is False


def test_network_error_propagates():
    fake = FakeLedger()
    fake.get_code_error = NetworkError("node down")
    with pytest.raises(NetworkError, match="node down"):
        ExistenceChecker(fake).exists(STRANGER)


def test_unexpected_error_wrapped_as_network_error():
    fake = FakeLedger()
    fake.get_code_error = RuntimeError("boom")
    with pytest.raises(NetworkError, match="boom"):
        ExistenceChecker(fake).exists(STRANGER)
