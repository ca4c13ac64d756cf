"""
Deterministic address derivation. Pure; no ledger access.

The deployer contract uses CREATE3: it CREATE2s a fixed minimal proxy at a
salt-dependent address, and the proxy CREATEs the artifact with nonce 1. The
target address therefore depends only on (factory, salt), never on the
artifact's bytecode. Any drift from the on-ledger rule makes existence checks
look at the wrong address, so the factory's own addressOf() is cross-checked
by the orchestrator.
"""

from __future__ import annotations

from eth_utils import keccak, to_bytes, to_canonical_address, to_checksum_address

# 0xsequence / solady CREATE3 proxy init code.
PROXY_INIT_CODE = bytes.fromhex("67363d3d37363d34f03d5260086018f3")
PROXY_INIT_CODE_HASH = keccak(PROXY_INIT_CODE)


def derive_salt(salt: str) -> bytes:
    """keccak256 of the UTF-8 salt string; the 32-byte deployment key."""
    return keccak(text=salt)


def _as_bytes32(value: bytes | str) -> bytes:
    raw = to_bytes(hexstr=value) if isinstance(value, str) else bytes(value)
    if len(raw) != 32:
        raise ValueError(f"Expected 32-byte salt, got {len(raw)} bytes")
    return raw


def create2_address(factory: str, salt: bytes | str, init_code_hash: bytes) -> str:
    """address = keccak256(0xff ++ factory ++ salt ++ init_code_hash)[12:]"""
    digest = keccak(b"\xff" + to_canonical_address(factory) + _as_bytes32(salt) + init_code_hash)
    return to_checksum_address(digest[12:])


def create_address_nonce1(deployer: str) -> str:
    """CREATE address for nonce 1: keccak256(rlp([deployer, 1]))[12:]"""
    # rlp list header 0xd6 (22 bytes), address header 0x94 (20 bytes), nonce 0x01
    digest = keccak(b"\xd6\x94" + to_canonical_address(deployer) + b"\x01")
    return to_checksum_address(digest[12:])


class AddressDeriver:
    """derive(factory, derived_salt) -> target address under the CREATE3 rule."""

    def proxy_address(self, factory_address: str, derived_salt: bytes | str) -> str:
        return create2_address(factory_address, derived_salt, PROXY_INIT_CODE_HASH)

    def derive(self, factory_address: str, derived_salt: bytes | str) -> str:
        return create_address_nonce1(self.proxy_address(factory_address, derived_salt))

    def derive_from_salt(self, factory_address: str, salt: str) -> str:
        return self.derive(factory_address, derive_salt(salt))
