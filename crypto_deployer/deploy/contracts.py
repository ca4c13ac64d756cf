"""
Minimal contract interfaces used by the deployer: calldata encoding and
return decoding for the deterministic factory, the staking registry
(entry point) and ownable artifacts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ..providers.base import LedgerClient

FACTORY_ADDRESS_OF = "addressOf(bytes32)"
FACTORY_DEPLOY = "deploy(bytes32,bytes)"
REGISTRY_GET_DEPOSIT_INFO = "getDepositInfo(address)"
OWNABLE_OWNER = "owner()"
OWNABLE_TRANSFER_OWNERSHIP = "transferOwnership(address)"

# DepositInfo {uint112 deposit; bool staked; uint112 stake; uint32 unstakeDelaySec; uint48 withdrawTime}
_DEPOSIT_INFO_TYPES = ["uint112", "bool", "uint112", "uint32", "uint48"]

_SIGNATURE_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")


def signature_types(signature: str) -> List[str]:
    """'addStake(address,uint32)' -> ['address', 'uint32']"""
    m = _SIGNATURE_RE.match(signature.replace(" ", ""))
    if not m:
        raise ValueError(f"Malformed function signature: {signature!r}")
    args = m.group(2)
    return [t for t in args.split(",") if t] if args else []


def encode_call(signature: str, args: Sequence[Any] = ()) -> bytes:
    types = signature_types(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} args, got {len(args)}")
    selector = function_signature_to_4byte_selector(signature.replace(" ", ""))
    return selector + (encode(types, list(args)) if types else b"")


def encode_constructor_args(types: Sequence[str], values: Sequence[Any]) -> bytes:
    if not types:
        return b""
    return encode(list(types), list(values))


@dataclass(frozen=True)
class StakeStatus:
    """Deposit/stake state of an address on the staking registry."""

    deposit: int
    staked: bool
    stake: int
    unstake_delay_sec: int
    withdraw_time: int

    def as_dict(self) -> dict:
        return {
            "deposit": self.deposit,
            "staked": self.staked,
            "stake": self.stake,
            "unstakeDelaySec": self.unstake_delay_sec,
            "withdrawTime": self.withdraw_time,
        }


class DeployerFactory:
    """The pre-deployed deterministic deployer contract."""

    def __init__(self, client: LedgerClient, address: str) -> None:
        self.client = client
        self.address = to_checksum_address(address)

    def address_of(self, derived_salt: bytes) -> str:
        raw = self.client.call(self.address, encode_call(FACTORY_ADDRESS_OF, [derived_salt]))
        (addr,) = decode(["address"], raw)
        return to_checksum_address(addr)

    def deploy_calldata(self, derived_salt: bytes, init_code: bytes) -> bytes:
        return encode_call(FACTORY_DEPLOY, [derived_salt, init_code])


class StakingRegistry:
    """Entry-point style registry holding deposits and stakes."""

    def __init__(self, client: LedgerClient, address: str) -> None:
        self.client = client
        self.address = to_checksum_address(address)

    def deposit_info(self, account: str) -> StakeStatus:
        raw = self.client.call(self.address, encode_call(REGISTRY_GET_DEPOSIT_INFO, [account]))
        deposit, staked, stake, delay, withdraw = decode([f"({','.join(_DEPOSIT_INFO_TYPES)})"], raw)[0]
        return StakeStatus(
            deposit=deposit,
            staked=staked,
            stake=stake,
            unstake_delay_sec=delay,
            withdraw_time=withdraw,
        )


class Ownable:
    def __init__(self, client: LedgerClient, address: str) -> None:
        self.client = client
        self.address = to_checksum_address(address)

    def owner(self) -> str:
        raw = self.client.call(self.address, encode_call(OWNABLE_OWNER))
        (addr,) = decode(["address"], raw)
        return to_checksum_address(addr)

    def transfer_ownership_calldata(self, new_owner: str) -> bytes:
        return encode_call(OWNABLE_TRANSFER_OWNERSHIP, [new_owner])


def stake_calldata(signature: str, registry_address: str, unstake_delay_sec: int) -> Tuple[bytes, List[Any]]:
    """
    Build addStake calldata. Supports addStake(uint32) and
    addStake(address,uint32) where the address is the registry.
    """
    types = signature_types(signature)
    if types == ["uint32"]:
        args: List[Any] = [unstake_delay_sec]
    elif types == ["address", "uint32"]:
        args = [registry_address, unstake_delay_sec]
    else:
        raise ValueError(f"Unsupported stake signature: {signature}")
    return encode_call(signature, args), args
