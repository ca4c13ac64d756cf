"""
Etherscan-compatible source verification client.

Uses the contract verification endpoint (API key required):
  POST {api_url}?module=contract&action=verifysourcecode
with the Hardhat build-info standard JSON input as the source.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from ..core.errors import VerificationError

ETHERSCAN_API_URL = "https://api.etherscan.io/api"
HTTP_TIMEOUT_S = 30.0

_ALREADY_VERIFIED_MARKERS = ("already verified",)


@dataclass(frozen=True)
class VerificationSource:
    """Everything the verification service needs besides address and args."""

    contract_name: str
    source_name: str
    compiler_version: str
    standard_json_input: Dict[str, Any]

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"


class EtherscanVerifier:
    """Submit verification requests to an Etherscan-style explorer API."""

    def __init__(
        self,
        api_key: str,
        api_url: str = ETHERSCAN_API_URL,
        chain_id: Optional[int] = None,
        timeout_s: float = HTTP_TIMEOUT_S,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._chain_id = chain_id
        self._timeout_s = timeout_s

    @property
    def provider_name(self) -> str:
        return "etherscan"

    def submit(self, address: str, source: VerificationSource, encoded_args_hex: str) -> str:
        """
        Submit one verification request. Returns the service's receipt guid,
        or "already-verified". Raises VerificationError on any other outcome.
        """
        if not self._api_key:
            raise VerificationError("No explorer API key configured")
        params: Dict[str, Any] = {"module": "contract", "action": "verifysourcecode"}
        if self._chain_id is not None:
            params["chainid"] = self._chain_id
        form = {
            "apikey": self._api_key,
            "contractaddress": address,
            "sourceCode": json.dumps(source.standard_json_input),
            "codeformat": "solidity-standard-json-input",
            "contractname": source.fully_qualified_name,
            "compilerversion": source.compiler_version,
            # Etherscan's field name is misspelled.
            "constructorArguements": encoded_args_hex.removeprefix("0x"),
        }
        try:
            resp = requests.post(self._api_url, params=params, data=form, timeout=self._timeout_s)
        except requests.RequestException as exc:
            raise VerificationError(f"Verification service unreachable: {exc}") from exc
        if resp.status_code == 429:
            raise VerificationError("Verification service rate limit (HTTP 429)")
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.HTTPError, ValueError) as exc:
            raise VerificationError(f"Bad verification response: {exc}") from exc

        result = str(data.get("result", ""))
        if str(data.get("status")) == "1":
            return result
        if any(m in result.lower() for m in _ALREADY_VERIFIED_MARKERS):
            return "already-verified"
        raise VerificationError(f"Verification rejected: {result or data.get('message')}")
