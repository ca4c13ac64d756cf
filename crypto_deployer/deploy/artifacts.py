"""
Artifact registry: compiled Hardhat artifacts plus the deployment plan.

The plan (config `plan:` list) names each artifact, its salt key, its
constructor arguments and, for registry participants, its stake/ownership
lifecycle. Compiled bytecode is read from Hardhat's artifacts directory:
  <artifacts_dir>/**/<Contract>.json       bytecode, abi, sourceName
  <artifacts_dir>/**/<Contract>.dbg.json   pointer to build-info (for verification)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import to_bytes

from ..core.errors import ConfigurationError
from ..providers.verifier import VerificationSource

logger = logging.getLogger(__name__)

ARG_LITERAL = "literal"
ARG_REF = "ref"
ARG_SIGNER = "signer"
ARG_SETTING = "setting"


@dataclass(frozen=True)
class ArgSpec:
    """One constructor argument: ABI type and where its value comes from."""

    abi_type: str
    kind: str
    value: Any = None

    @classmethod
    def from_config(cls, raw: Dict[str, Any]) -> "ArgSpec":
        if not isinstance(raw, dict) or "type" not in raw:
            raise ConfigurationError(f"Constructor arg needs a 'type': {raw!r}")
        abi_type = str(raw["type"])
        if "ref" in raw:
            return cls(abi_type, ARG_REF, str(raw["ref"]))
        if raw.get("signer"):
            return cls(abi_type, ARG_SIGNER)
        if "setting" in raw:
            return cls(abi_type, ARG_SETTING, str(raw["setting"]))
        if "value" in raw:
            return cls(abi_type, ARG_LITERAL, raw["value"])
        raise ConfigurationError(f"Constructor arg has no value source (ref/signer/setting/value): {raw!r}")


@dataclass(frozen=True)
class LifecycleSpec:
    """Stake + ownership configuration for a registry-participant artifact."""

    stake_profile: str
    stake_signature: str
    registry: str
    owner_setting: str


@dataclass(frozen=True)
class CompiledArtifact:
    contract_name: str
    source_name: str
    bytecode: bytes
    abi: Tuple[Dict[str, Any], ...] = ()
    build_info_path: Optional[Path] = None

    def constructor_input_types(self) -> Optional[List[str]]:
        for item in self.abi:
            if item.get("type") == "constructor":
                return [inp["type"] for inp in item.get("inputs", [])]
        return None

    def verification_source(self) -> Optional[VerificationSource]:
        if self.build_info_path is None or not self.build_info_path.is_file():
            return None
        with open(self.build_info_path, encoding="utf-8") as f:
            info = json.load(f)
        version = info.get("solcLongVersion") or info.get("solcVersion")
        if not version or "input" not in info:
            return None
        return VerificationSource(
            contract_name=self.contract_name,
            source_name=self.source_name,
            compiler_version=f"v{version}",
            standard_json_input=info["input"],
        )


@dataclass(frozen=True)
class Artifact:
    """Immutable deployment unit: name, salt, bytecode template, constructor spec."""

    name: str
    contract: str
    salt: str
    bytecode: bytes
    constructor: Tuple[ArgSpec, ...] = ()
    lifecycle: Optional[LifecycleSpec] = None
    local_only: bool = False
    address_setting: Optional[str] = None
    compiled: Optional[CompiledArtifact] = field(default=None, compare=False, repr=False)

    @property
    def depends_on(self) -> Tuple[str, ...]:
        deps = [a.value for a in self.constructor if a.kind == ARG_REF]
        if self.lifecycle is not None and self.lifecycle.registry not in deps:
            deps.append(self.lifecycle.registry)
        return tuple(deps)

    @property
    def constructor_types(self) -> List[str]:
        return [a.abi_type for a in self.constructor]

    @property
    def is_stake_registrable(self) -> bool:
        return self.lifecycle is not None


def _bytecode_from_json(value: Any, path: Path) -> bytes:
    if isinstance(value, dict):  # solc-style {"object": "..."}
        value = value.get("object")
    if not isinstance(value, str) or value in ("", "0x"):
        raise ConfigurationError(f"{path}: missing or empty bytecode")
    if "__$" in value:
        raise ConfigurationError(f"{path}: bytecode has unlinked libraries")
    return to_bytes(hexstr=value)


def load_compiled_artifact(path: Path) -> CompiledArtifact:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    build_info: Optional[Path] = None
    dbg = path.with_name(path.stem + ".dbg.json")
    if dbg.is_file():
        with open(dbg, encoding="utf-8") as f:
            rel = json.load(f).get("buildInfo")
        if rel:
            build_info = (dbg.parent / rel).resolve()
    return CompiledArtifact(
        contract_name=data.get("contractName", path.stem),
        source_name=data.get("sourceName", ""),
        bytecode=_bytecode_from_json(data.get("bytecode"), path),
        abi=tuple(data.get("abi") or ()),
        build_info_path=build_info,
    )


class ArtifactStore:
    """Index of Hardhat artifact JSON files by contract name."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._index: Optional[Dict[str, Path]] = None
        self._cache: Dict[str, CompiledArtifact] = {}

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        if not self.root.is_dir():
            raise ConfigurationError(f"Artifacts directory not found: {self.root}")
        for p in sorted(self.root.rglob("*.json")):
            if p.name.endswith(".dbg.json") or "build-info" in p.parts:
                continue
            if p.stem in index:
                logger.debug("Duplicate artifact %s (keeping %s)", p, index[p.stem])
                continue
            index[p.stem] = p
        return index

    def get(self, contract: str) -> CompiledArtifact:
        if contract not in self._cache:
            if self._index is None:
                self._index = self._build_index()
            path = self._index.get(contract)
            if path is None:
                raise ConfigurationError(f"No compiled artifact for '{contract}' under {self.root}")
            self._cache[contract] = load_compiled_artifact(path)
        return self._cache[contract]


def _parse_lifecycle(name: str, raw: Optional[Dict[str, Any]]) -> Optional[LifecycleSpec]:
    if not raw:
        return None
    missing = [k for k in ("stake_profile", "stake_signature", "registry", "owner_setting") if not raw.get(k)]
    if missing:
        raise ConfigurationError(f"{name}: lifecycle missing {', '.join(missing)}")
    return LifecycleSpec(
        stake_profile=str(raw["stake_profile"]),
        stake_signature=str(raw["stake_signature"]).replace(" ", ""),
        registry=str(raw["registry"]),
        owner_setting=str(raw["owner_setting"]),
    )


def build_plan(
    plan_cfg: List[Dict[str, Any]],
    salts: Dict[str, str],
    store: ArtifactStore,
) -> List[Artifact]:
    """
    Turn the config plan into Artifacts, in plan order.
    Raises ConfigurationError on duplicate names, unknown salt keys, or
    constructor specs that disagree with the compiled ABI.
    """
    artifacts: List[Artifact] = []
    seen: set[str] = set()
    for raw in plan_cfg:
        name = str(raw.get("name", "")).strip()
        if not name:
            raise ConfigurationError(f"Plan entry without a name: {raw!r}")
        if name in seen:
            raise ConfigurationError(f"Duplicate artifact name in plan: {name}")
        seen.add(name)

        salt_key = str(raw.get("salt", ""))
        salt = salts.get(salt_key)
        if not salt:
            raise ConfigurationError(f"{name}: no salt configured for key '{salt_key}'")

        contract = str(raw.get("contract") or name)
        compiled = store.get(contract)
        constructor = tuple(ArgSpec.from_config(a) for a in raw.get("constructor") or [])
        abi_types = compiled.constructor_input_types()
        if abi_types is not None and abi_types != [a.abi_type for a in constructor]:
            raise ConfigurationError(
                f"{name}: constructor spec {[a.abi_type for a in constructor]} "
                f"does not match ABI {abi_types}"
            )

        artifacts.append(
            Artifact(
                name=name,
                contract=contract,
                salt=salt,
                bytecode=compiled.bytecode,
                constructor=constructor,
                lifecycle=_parse_lifecycle(name, raw.get("lifecycle")),
                local_only=bool(raw.get("local_only", False)),
                address_setting=raw.get("address_setting"),
                compiled=compiled,
            )
        )
    return artifacts
