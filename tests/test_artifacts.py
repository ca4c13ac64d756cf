"""
Hardhat artifact loading and plan construction.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from crypto_deployer.core.errors import ConfigurationError
from crypto_deployer.deploy.artifacts import (
    ARG_LITERAL,
    ARG_REF,
    ARG_SETTING,
    ARG_SIGNER,
    ArgSpec,
    ArtifactStore,
    build_plan,
    load_compiled_artifact,
)

_CTOR_ABI = [{"type": "constructor", "inputs": [{"name": "ep", "type": "address"}]}]


def _write_artifact(root: Path, contract: str, abi=None, bytecode="0x6080", build_info=True) -> Path:
    folder = root / "contracts" / f"{contract}.sol"
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{contract}.json"
    path.write_text(
        json.dumps(
            {
                "contractName": contract,
                "sourceName": f"contracts/{contract}.sol",
                "abi": abi or [],
                "bytecode": bytecode,
            }
        ),
        encoding="utf-8",
    )
    if build_info:
        info_dir = root / "build-info"
        info_dir.mkdir(exist_ok=True)
        (info_dir / "abc.json").write_text(
            json.dumps({"solcLongVersion": "0.8.17+commit.8df45f5f", "input": {"language": "Solidity"}}),
            encoding="utf-8",
        )
        (folder / f"{contract}.dbg.json").write_text(
            json.dumps({"_format": "hh-sol-dbg-1", "buildInfo": "../../build-info/abc.json"}),
            encoding="utf-8",
        )
    return path


class TestArgSpec:
    def test_kinds(self):
        assert ArgSpec.from_config({"type": "address", "ref": "EntryPoint"}).kind == ARG_REF
        assert ArgSpec.from_config({"type": "address", "signer": True}).kind == ARG_SIGNER
        assert ArgSpec.from_config({"type": "address", "setting": "paymaster_signer"}).kind == ARG_SETTING
        lit = ArgSpec.from_config({"type": "uint256", "value": 7})
        assert (lit.kind, lit.value) == (ARG_LITERAL, 7)

    def test_missing_type(self):
        with pytest.raises(ConfigurationError, match="type"):
            ArgSpec.from_config({"ref": "EntryPoint"})

    def test_missing_source(self):
        with pytest.raises(ConfigurationError, match="no value source"):
            ArgSpec.from_config({"type": "address"})


class TestLoadArtifact:
    def test_reads_bytecode_and_build_info(self, tmp_path):
        path = _write_artifact(tmp_path, "SmartAccount", abi=_CTOR_ABI)
        compiled = load_compiled_artifact(path)
        assert compiled.bytecode == b"\x60\x80"
        assert compiled.constructor_input_types() == ["address"]
        source = compiled.verification_source()
        assert source.compiler_version == "v0.8.17+commit.8df45f5f"
        assert source.fully_qualified_name == "contracts/SmartAccount.sol:SmartAccount"
        assert source.standard_json_input == {"language": "Solidity"}

    def test_no_build_info_means_no_verification_source(self, tmp_path):
        path = _write_artifact(tmp_path, "SmartAccount", build_info=False)
        assert load_compiled_artifact(path).verification_source() is None

    @pytest.mark.parametrize("bytecode", ["0x", ""])
    def test_empty_bytecode_rejected(self, tmp_path, bytecode):
        path = _write_artifact(tmp_path, "IFace", bytecode=bytecode)
        with pytest.raises(ConfigurationError, match="empty bytecode"):
            load_compiled_artifact(path)

    def test_unlinked_library_rejected(self, tmp_path):
        path = _write_artifact(tmp_path, "Linked", bytecode="0x6080__$abc$__")
        with pytest.raises(ConfigurationError, match="unlinked"):
            load_compiled_artifact(path)


class TestArtifactStore:
    def test_indexes_by_contract_name(self, tmp_path):
        _write_artifact(tmp_path, "SmartAccount")
        store = ArtifactStore(tmp_path)
        assert store.get("SmartAccount").contract_name == "SmartAccount"

    def test_unknown_contract(self, tmp_path):
        _write_artifact(tmp_path, "SmartAccount")
        with pytest.raises(ConfigurationError, match="No compiled artifact"):
            ArtifactStore(tmp_path).get("Nope")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ArtifactStore(tmp_path / "missing").get("SmartAccount")


class TestBuildPlan:
    def test_builds_in_order_with_lifecycle(self, tmp_path):
        _write_artifact(tmp_path, "EntryPoint")
        _write_artifact(tmp_path, "Paymaster", abi=_CTOR_ABI)
        plan = [
            {"name": "EntryPoint", "salt": "EP", "local_only": True, "address_setting": "entry_point"},
            {
                "name": "Paymaster",
                "salt": "PM",
                "constructor": [{"type": "address", "ref": "EntryPoint"}],
                "lifecycle": {
                    "stake_profile": "paymaster",
                    "stake_signature": "addStake( uint32 )",
                    "registry": "EntryPoint",
                    "owner_setting": "paymaster_owner",
                },
            },
        ]
        arts = build_plan(plan, {"EP": "ep-v1", "PM": "pm-v1"}, ArtifactStore(tmp_path))
        assert [a.name for a in arts] == ["EntryPoint", "Paymaster"]
        assert arts[0].local_only and arts[0].address_setting == "entry_point"
        assert arts[1].salt == "pm-v1"
        assert arts[1].depends_on == ("EntryPoint",)
        assert arts[1].is_stake_registrable
        assert arts[1].lifecycle.stake_signature == "addStake(uint32)"

    def test_constructor_mismatch_with_abi(self, tmp_path):
        _write_artifact(tmp_path, "Paymaster", abi=_CTOR_ABI)
        plan = [{"name": "Paymaster", "salt": "PM"}]
        with pytest.raises(ConfigurationError, match="does not match ABI"):
            build_plan(plan, {"PM": "pm-v1"}, ArtifactStore(tmp_path))

    def test_duplicate_names(self, tmp_path):
        _write_artifact(tmp_path, "A")
        with pytest.raises(ConfigurationError, match="Duplicate"):
            build_plan([{"name": "A", "salt": "S"}, {"name": "A", "salt": "S"}], {"S": "s"}, ArtifactStore(tmp_path))

    def test_unknown_salt_key(self, tmp_path):
        _write_artifact(tmp_path, "A")
        with pytest.raises(ConfigurationError, match="no salt configured"):
            build_plan([{"name": "A", "salt": "MISSING"}], {}, ArtifactStore(tmp_path))

    def test_incomplete_lifecycle(self, tmp_path):
        _write_artifact(tmp_path, "A")
        plan = [{"name": "A", "salt": "S", "lifecycle": {"stake_profile": "factory"}}]
        with pytest.raises(ConfigurationError, match="lifecycle missing"):
            build_plan(plan, {"S": "s"}, ArtifactStore(tmp_path))
