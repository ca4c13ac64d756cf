"""
Source verification: the detached notifier never raises into the caller,
and the Etherscan client maps service responses to results or errors.
"""
from __future__ import annotations

import threading

import pytest
import requests

from crypto_deployer.core.errors import VerificationError
from crypto_deployer.deploy.verification import VerificationNotifier
from crypto_deployer.providers import verifier as verifier_mod
from crypto_deployer.providers.verifier import EtherscanVerifier, VerificationSource
from tests.fakes import RecordingVerifier

ADDR = "0x" + "ab" * 20
SOURCE = VerificationSource(
    contract_name="SmartAccountFactory",
    source_name="contracts/SmartAccountFactory.sol",
    compiler_version="v0.8.17+commit.8df45f5f",
    standard_json_input={"language": "Solidity"},
)


class TestNotifier:
    def test_verify_submits_encoded_args(self):
        rec = RecordingVerifier()
        notifier = VerificationNotifier(rec)
        notifier.verify("F", ADDR, ["uint256"], [1], source=SOURCE)
        results = notifier.drain(5)
        notifier.close()
        assert len(results) == 1 and results[0].ok
        assert results[0].detail == "guid-1"
        address, source, args = rec.calls[0]
        assert address == ADDR
        assert source is SOURCE
        assert args == "0x" + "00" * 31 + "01"

    def test_verifier_error_becomes_failed_result(self):
        notifier = VerificationNotifier(RecordingVerifier(error=VerificationError("rate limit")))
        notifier.verify("F", ADDR, [], [], source=SOURCE)
        (result,) = notifier.drain(5)
        notifier.close()
        assert not result.ok
        assert "rate limit" in result.detail

    def test_missing_source_becomes_failed_result(self):
        rec = RecordingVerifier()
        notifier = VerificationNotifier(rec)
        notifier.verify("F", ADDR, [], [])
        (result,) = notifier.drain(5)
        notifier.close()
        assert not result.ok
        assert rec.calls == []

    def test_source_loader_runs_on_worker_and_failures_are_results(self):
        rec = RecordingVerifier()
        callers = []

        def broken_loader():
            callers.append(threading.current_thread().name)
            raise ValueError("truncated build info")

        notifier = VerificationNotifier(rec)
        notifier.verify("F", ADDR, [], [], load_source=broken_loader)
        notifier.verify("G", ADDR, [], [], load_source=lambda: SOURCE)
        results = notifier.drain(5)
        notifier.close()
        assert [(r.name, r.ok) for r in results] == [("F", False), ("G", True)]
        assert "truncated build info" in results[0].detail
        assert callers and callers[0].startswith("verify")
        assert len(rec.calls) == 1

    def test_disabled_notifier_never_loads_source(self):
        def loader():
            raise AssertionError("should not be called")

        notifier = VerificationNotifier(None)
        notifier.verify("F", ADDR, [], [], load_source=loader)
        assert notifier.drain(1) == []

    def test_verify_returns_before_submission_finishes(self):
        gate = threading.Event()

        class SlowVerifier:
            def submit(self, address, source, encoded_args_hex):
                gate.wait(5)
                return "guid-slow"

        notifier = VerificationNotifier(SlowVerifier())
        notifier.verify("F", ADDR, [], [], source=SOURCE)
        assert notifier.drain(0) == []
        gate.set()
        assert [r.detail for r in notifier.drain(5)] == ["guid-slow"]
        notifier.close()

    def test_disabled_without_verifier(self):
        notifier = VerificationNotifier(None)
        assert not notifier.enabled
        notifier.verify("F", ADDR, [], [], source=SOURCE)
        assert notifier.drain(1) == []
        notifier.close()


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body or {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._body


@pytest.fixture
def posted(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, params=None, data=None, timeout=None):
        calls.append({"url": url, "params": params, "data": data})
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(verifier_mod.requests, "post", fake_post)
    return calls, responses


class TestEtherscanVerifier:
    def test_submit_returns_guid(self, posted):
        calls, responses = posted
        responses.append(FakeResponse(200, {"status": "1", "message": "OK", "result": "guid-42"}))
        v = EtherscanVerifier(api_key="key", api_url="https://api.example/api", chain_id=137)
        assert v.submit(ADDR, SOURCE, "0x0001") == "guid-42"
        call = calls[0]
        assert call["params"] == {"module": "contract", "action": "verifysourcecode", "chainid": 137}
        assert call["data"]["contractname"] == "contracts/SmartAccountFactory.sol:SmartAccountFactory"
        assert call["data"]["constructorArguements"] == "0001"
        assert call["data"]["codeformat"] == "solidity-standard-json-input"

    def test_already_verified(self, posted):
        _, responses = posted
        responses.append(FakeResponse(200, {"status": "0", "result": "Contract source code already verified"}))
        assert EtherscanVerifier(api_key="key").submit(ADDR, SOURCE, "0x") == "already-verified"

    def test_rejected(self, posted):
        _, responses = posted
        responses.append(FakeResponse(200, {"status": "0", "result": "Invalid constructor arguments"}))
        with pytest.raises(VerificationError, match="Invalid constructor"):
            EtherscanVerifier(api_key="key").submit(ADDR, SOURCE, "0x")

    def test_rate_limited(self, posted):
        _, responses = posted
        responses.append(FakeResponse(429))
        with pytest.raises(VerificationError, match="rate limit"):
            EtherscanVerifier(api_key="key").submit(ADDR, SOURCE, "0x")

    def test_unreachable(self, posted):
        _, responses = posted
        responses.append(requests.ConnectionError("dns"))
        with pytest.raises(VerificationError, match="unreachable"):
            EtherscanVerifier(api_key="key").submit(ADDR, SOURCE, "0x")

    def test_no_api_key(self, posted):
        calls, _ = posted
        with pytest.raises(VerificationError, match="API key"):
            EtherscanVerifier(api_key="").submit(ADDR, SOURCE, "0x")
        assert calls == []
