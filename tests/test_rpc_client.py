"""
JsonRpcClient over a scripted HTTP session: reads are retried, sends are not.
"""
from __future__ import annotations

from typing import Any, List

import pytest
import requests

from crypto_deployer.core.errors import NetworkError, TransactionError
from crypto_deployer.providers.base import LedgerClient, ProviderStatus
from crypto_deployer.providers.resilience import RetryConfig
from crypto_deployer.providers.rpc import JsonRpcClient, RpcResponseError, TransientRpcError

ADDR = "0x" + "ab" * 20


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class ScriptedSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses: Any) -> None:
        self.responses: List[Any] = list(responses)
        self.payloads: List[dict] = []

    def post(self, url: str, json: dict, timeout: float) -> FakeResponse:
        self.payloads.append(json)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def ok(result: Any) -> FakeResponse:
    return FakeResponse(200, {"jsonrpc": "2.0", "id": 1, "result": result})


def _client(*responses: Any) -> tuple[JsonRpcClient, ScriptedSession]:
    session = ScriptedSession(*responses)
    client = JsonRpcClient(
        "http://node:8545",
        retry_config=RetryConfig(max_retries=3, base_delay_s=0.0, retry_on=(TransientRpcError,)),
        session=session,
        receipt_poll_s=0.0,
    )
    return client, session


def test_satisfies_ledger_protocol():
    client, _ = _client()
    assert isinstance(client, LedgerClient)


def test_chain_id_and_payload():
    client, session = _client(ok("0x7a69"))
    assert client.chain_id() == 31337
    assert session.payloads[0]["method"] == "eth_chainId"
    assert session.payloads[0]["jsonrpc"] == "2.0"


def test_get_code_empty_and_present():
    client, session = _client(ok("0x"), ok("0x6080"))
    assert client.get_code(ADDR) == b""
    assert client.get_code(ADDR) == b"\x60\x80"
    assert session.payloads[0]["params"][1] == "latest"


def test_call_hex_encodes_data():
    client, session = _client(ok("0x" + "00" * 31 + "01"))
    assert client.call(ADDR, b"\x8d\xa5\xcb\x5b")[-1] == 1
    assert session.payloads[0]["params"][0]["data"] == "0x8da5cb5b"


def test_read_retries_transient_status():
    client, session = _client(FakeResponse(503), FakeResponse(503), ok("0x10"))
    assert client.get_balance(ADDR) == 16
    assert len(session.payloads) == 3
    assert client.health.status is ProviderStatus.OK


def test_read_retries_connection_errors_then_network_error():
    client, session = _client(*[requests.ConnectionError("refused")] * 3)
    with pytest.raises(NetworkError, match="eth_chainId unavailable"):
        client.chain_id()
    assert len(session.payloads) == 3
    assert client.health.fail_count == 1
    assert "refused" in client.health.last_error


def test_rpc_error_not_retried():
    client, session = _client(FakeResponse(200, {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "bad"}}))
    with pytest.raises(RpcResponseError) as exc_info:
        client.accounts()
    assert exc_info.value.code == -32000
    assert len(session.payloads) == 1


def test_malformed_body_is_network_error():
    client, _ = _client(FakeResponse(200, ValueError("not json")))
    with pytest.raises(NetworkError, match="bad response"):
        client.chain_id()


def test_send_transaction_single_attempt():
    client, session = _client(FakeResponse(503))
    with pytest.raises(TransactionError):
        client.send_transaction({"from": ADDR, "to": ADDR, "data": b"\x01", "value": 5})
    assert len(session.payloads) == 1


def test_send_transaction_hex_encodes_params():
    client, session = _client(ok("0xhash"))
    assert client.send_transaction({"from": ADDR, "to": ADDR, "data": b"\x01\x02", "value": 10**18}) == "0xhash"
    params = session.payloads[0]["params"][0]
    assert params["data"] == "0x0102"
    assert params["value"] == "0xde0b6b3a7640000"
    assert params["from"] == ADDR


def test_send_rejection_wrapped():
    client, _ = _client(FakeResponse(200, {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "insufficient funds"}}))
    with pytest.raises(TransactionError, match="insufficient funds"):
        client.send_transaction({"from": ADDR, "to": ADDR, "data": b""})


def test_wait_for_receipt_polls_until_mined():
    receipt = {"status": "0x1", "blockNumber": "0x64", "gasUsed": "0x5208", "contractAddress": None}
    client, session = _client(ok(None), ok(receipt))
    r = client.wait_for_receipt("0xhash", timeout_s=5)
    assert r.succeeded
    assert r.block_number == 100
    assert r.gas_used == 21000
    assert len(session.payloads) == 2


def test_wait_for_receipt_timeout():
    client, _ = _client(ok(None))
    with pytest.raises(TransactionError, match="not included") as exc_info:
        client.wait_for_receipt("0xhash", timeout_s=0)
    assert exc_info.value.tx_hash == "0xhash"
