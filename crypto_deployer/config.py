"""
Load config from config.yaml with optional env overrides.
Single source of truth for RPC endpoint, deployment mode, addresses, salts,
per-chain network profiles, verification and the deployment plan.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from eth_utils import is_address, to_checksum_address

from .core.errors import ConfigurationError

DEFAULT_ENTRY_POINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "network": {
        "rpc_url": "http://127.0.0.1:8545",
        "local_chain_ids": [31337, 1337],
        "receipt_timeout_s": 180,
    },
    "deployment": {
        "mode": "DEV",
        "artifacts_dir": "artifacts",
        "output_dir": "deployments",
        "on_deploy_failure": "abort",
        "deployer_address": "",
    },
    "addresses": {
        "entry_point": DEFAULT_ENTRY_POINT,
        "deployer_contract": "",
        "smart_account_factory_owner": "",
        "paymaster_owner": "",
        "paymaster_signer": "",
    },
    "salts": {
        "DEV": {
            "ENTRY_POINT": "DEVX_ENTRY_POINT_V0_27062023",
            "WALLET_IMP": "DEVX_WALLET_IMP_V2_14082023",
            "WALLET_FACTORY": "DEVX_WALLET_FACTORY_V2_14082023",
            "SINGELTON_PAYMASTER": "DEVX_SINGELTON_PAYMASTER_V1_14082023",
            "ECDSA_REGISTRY_MODULE": "DEVX_ECDSA_REGISTRY_MODULE_V1_14082023",
            "MULTICHAIN_VALIDATOR_MODULE": "DEVX_MULTICHAIN_VALIDATOR_MODULE_V1_14082023",
            "PASSKEY_MODULE": "DEVX_PASSKEY_MODULE_V1_14082023",
            "SESSION_KEY_MANAGER_MODULE_V2": "DEVX_SESSION_KEY_MANAGER_MODULE_V2_14082023",
            "BATCHED_SESSION_ROUTER_MODULE": "DEVX_BATCHED_SESSION_ROUTER_MODULE_V1_14082023",
            "ERC20_SESSION_VALIDATION_MODULE": "DEVX_ERC20_SESSION_VALIDATION_MODULE_V1_14082023",
            "ERC721_SESSION_VALIDATION_MODULE": "DEVX_ERC721_SESSION_VALIDATION_MODULE_V1_14082023",
            "SMART_CONTRACT_OWNERSHIP_REGISTRY_MODULE": "DEVX_SMART_CONTRACT_OWNERSHIP_REGISTRY_MODULE_V1_14082023",
        },
        "PROD": {
            "ENTRY_POINT": "PROD_ENTRY_POINT_V0_27062023",
            "WALLET_IMP": "PROD_WALLET_IMP_V2_14082023",
            "WALLET_FACTORY": "PROD_WALLET_FACTORY_V2_14082023",
            "SINGELTON_PAYMASTER": "PROD_SINGELTON_PAYMASTER_V1_14082023",
            "ECDSA_REGISTRY_MODULE": "PROD_ECDSA_REGISTRY_MODULE_V1_14082023",
            "MULTICHAIN_VALIDATOR_MODULE": "PROD_MULTICHAIN_VALIDATOR_MODULE_V1_14082023",
            "PASSKEY_MODULE": "PROD_PASSKEY_MODULE_V1_14082023",
            "SESSION_KEY_MANAGER_MODULE_V2": "PROD_SESSION_KEY_MANAGER_MODULE_V2_14082023",
            "BATCHED_SESSION_ROUTER_MODULE": "PROD_BATCHED_SESSION_ROUTER_MODULE_V1_14082023",
            "ERC20_SESSION_VALIDATION_MODULE": "PROD_ERC20_SESSION_VALIDATION_MODULE_V1_14082023",
            "ERC721_SESSION_VALIDATION_MODULE": "PROD_ERC721_SESSION_VALIDATION_MODULE_V1_14082023",
            "SMART_CONTRACT_OWNERSHIP_REGISTRY_MODULE": "PROD_SMART_CONTRACT_OWNERSHIP_REGISTRY_MODULE_V1_14082023",
        },
    },
    "networks": {},
    "verification": {
        "enabled": True,
        "api_url": "https://api.etherscan.io/v2/api",
        "api_key": "",
        "drain_timeout_s": 120,
    },
    # Dependency order: entry point, base implementation, factory (clones the
    # implementation), paymaster, then stand-alone modules.
    "plan": [
        {
            "name": "EntryPoint",
            "contract": "EntryPoint",
            "salt": "ENTRY_POINT",
            "local_only": True,
            "address_setting": "entry_point",
        },
        {
            "name": "SmartAccount",
            "salt": "WALLET_IMP",
            "constructor": [{"type": "address", "ref": "EntryPoint"}],
        },
        {
            "name": "SmartAccountFactory",
            "salt": "WALLET_FACTORY",
            "constructor": [
                {"type": "address", "ref": "SmartAccount"},
                {"type": "address", "signer": True},
            ],
            "lifecycle": {
                "stake_profile": "factory",
                "stake_signature": "addStake(address,uint32)",
                "registry": "EntryPoint",
                "owner_setting": "smart_account_factory_owner",
            },
        },
        {
            "name": "VerifyingPaymaster",
            "contract": "VerifyingSingletonPaymaster",
            "salt": "SINGELTON_PAYMASTER",
            "constructor": [
                {"type": "address", "signer": True},
                {"type": "address", "ref": "EntryPoint"},
                {"type": "address", "setting": "paymaster_signer"},
            ],
            "lifecycle": {
                "stake_profile": "paymaster",
                "stake_signature": "addStake(uint32)",
                "registry": "EntryPoint",
                "owner_setting": "paymaster_owner",
            },
        },
        {"name": "EcdsaOwnershipRegistryModule", "salt": "ECDSA_REGISTRY_MODULE"},
        {
            "name": "MultichainValidatorModule",
            "contract": "MultichainECDSAValidator",
            "salt": "MULTICHAIN_VALIDATOR_MODULE",
        },
        {"name": "PasskeyModule", "contract": "PasskeyRegistryModule", "salt": "PASSKEY_MODULE"},
        {
            "name": "SessionKeyManagerModule",
            "contract": "SessionKeyManager",
            "salt": "SESSION_KEY_MANAGER_MODULE_V2",
        },
        {
            "name": "BatchedSessionRouterModule",
            "contract": "BatchedSessionRouter",
            "salt": "BATCHED_SESSION_ROUTER_MODULE",
        },
        {"name": "ERC20SessionValidationModule", "salt": "ERC20_SESSION_VALIDATION_MODULE"},
        {"name": "ERC721SessionValidationModule", "salt": "ERC721_SESSION_VALIDATION_MODULE"},
        {
            "name": "SmartContractOwnershipRegistryModule",
            "salt": "SMART_CONTRACT_OWNERSHIP_REGISTRY_MODULE",
        },
    ],
}

DEPLOYMENT_MODES = ("DEV", "PROD")
FAILURE_POLICIES = ("abort", "continue")


def _config_yaml_path() -> Path:
    """config.yaml lives at repo root (parent of package dir) unless CRYPTO_DEPLOYER_CONFIG is set."""
    override = os.environ.get("CRYPTO_DEPLOYER_CONFIG")
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml(path: Optional[Path] = None) -> dict:
    config_path = path or _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides(base: dict, mode: Optional[str] = None) -> dict:
    """Env layer. An explicit mode wins over DEPLOYMENT_MODE and picks the *_ADDRESS_<MODE> vars."""
    overrides: dict = {}
    rpc = os.environ.get("CRYPTO_DEPLOYER_RPC_URL")
    if rpc:
        overrides.setdefault("network", {})["rpc_url"] = rpc
    mode = mode or os.environ.get("DEPLOYMENT_MODE")
    if mode:
        overrides.setdefault("deployment", {})["mode"] = mode
    deployer = os.environ.get("DEPLOYER_ADDRESS")
    if deployer:
        overrides.setdefault("deployment", {})["deployer_address"] = deployer
    entry_point = os.environ.get("ENTRY_POINT_ADDRESS")
    if entry_point:
        overrides.setdefault("addresses", {})["entry_point"] = entry_point
    api_key = os.environ.get("ETHERSCAN_API_KEY")
    if api_key:
        overrides.setdefault("verification", {})["api_key"] = api_key

    # Per-mode address settings, e.g. PAYMASTER_OWNER_ADDRESS_PROD
    effective_mode = str(mode or base.get("deployment", {}).get("mode", "DEV")).upper()
    for key in base.get("addresses", {}):
        value = os.environ.get(f"{key.upper()}_ADDRESS_{effective_mode}")
        if value:
            overrides.setdefault("addresses", {})[key] = value
    return overrides


def get_config(path: Optional[Path] = None, mode: Optional[str] = None) -> dict:
    """Return merged config: defaults <- config.yaml <- env (mode, if given, overrides DEPLOYMENT_MODE)."""
    merged = _deep_merge(_DEFAULTS, _load_yaml(path))
    merged = _deep_merge(merged, _env_overrides(merged, mode))
    return merged


def _to_int(value: Any, what: str) -> int:
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ConfigurationError(f"{what}: not an integer: {value!r}") from exc


@dataclass(frozen=True)
class StakeProfile:
    stake_wei: int
    unstake_delay_sec: int


@dataclass(frozen=True)
class NetworkProfile:
    """Per-chain gas overrides and stake parameters."""

    chain_id: int
    gas: Dict[str, int] = field(default_factory=dict)
    stake: Dict[str, StakeProfile] = field(default_factory=dict)

    def stake_profile(self, name: str) -> StakeProfile:
        profile = self.stake.get(name)
        if profile is None:
            raise ConfigurationError(f"Stake config '{name}' not found for chainId {self.chain_id}")
        return profile


def _parse_networks(raw: Dict[Any, Any]) -> Dict[int, NetworkProfile]:
    out: Dict[int, NetworkProfile] = {}
    for chain_key, body in (raw or {}).items():
        chain_id = _to_int(chain_key, "networks key")
        body = body or {}
        gas = {str(k): _to_int(v, f"networks.{chain_id}.gas.{k}") for k, v in (body.get("gas") or {}).items()}
        stake = {
            str(name): StakeProfile(
                stake_wei=_to_int(p.get("stake_wei"), f"networks.{chain_id}.stake.{name}.stake_wei"),
                unstake_delay_sec=_to_int(
                    p.get("unstake_delay_sec"), f"networks.{chain_id}.stake.{name}.unstake_delay_sec"
                ),
            )
            for name, p in (body.get("stake") or {}).items()
        }
        out[chain_id] = NetworkProfile(chain_id=chain_id, gas=gas, stake=stake)
    return out


@dataclass(frozen=True)
class VerificationSettings:
    enabled: bool = True
    api_url: str = ""
    api_key: str = ""
    drain_timeout_s: float = 120.0


@dataclass(frozen=True)
class DeploySettings:
    """Validated, immutable view of the merged config."""

    mode: str
    rpc_url: str
    local_chain_ids: Tuple[int, ...]
    receipt_timeout_s: float
    artifacts_dir: Path
    output_dir: Path
    on_deploy_failure: str
    deployer_address: Optional[str]
    addresses: Dict[str, str]
    salts: Dict[str, str]
    networks: Dict[int, NetworkProfile]
    verification: VerificationSettings
    plan: List[Dict[str, Any]]

    def network_profile(self, chain_id: int) -> NetworkProfile:
        profile = self.networks.get(chain_id)
        if profile is None:
            raise ConfigurationError(f"Network profile (gas/stake config) not found for chainId {chain_id}")
        return profile

    def address(self, setting: str) -> str:
        """Checksummed address setting; ConfigurationError if unset or malformed."""
        value = self.addresses.get(setting, "")
        if not value or not is_address(value):
            raise ConfigurationError(f"Invalid {setting.replace('_', ' ').title()} Address: {value!r}")
        return to_checksum_address(value)

    def is_local_chain(self, chain_id: int) -> bool:
        return chain_id in self.local_chain_ids


def load_settings(cfg: Optional[dict] = None) -> DeploySettings:
    """Build DeploySettings from merged config; raises ConfigurationError on malformed input."""
    cfg = cfg if cfg is not None else get_config()
    dep = cfg.get("deployment", {})
    net = cfg.get("network", {})

    mode = str(dep.get("mode", "DEV")).upper()
    if mode not in DEPLOYMENT_MODES:
        raise ConfigurationError(f"DEPLOYMENT_MODE must be one of {DEPLOYMENT_MODES}, got {mode!r}")
    policy = str(dep.get("on_deploy_failure", "abort")).lower()
    if policy not in FAILURE_POLICIES:
        raise ConfigurationError(f"on_deploy_failure must be one of {FAILURE_POLICIES}, got {policy!r}")
    salts = (cfg.get("salts") or {}).get(mode) or {}
    if not salts:
        raise ConfigurationError(f"No salts configured for mode {mode}")

    ver = cfg.get("verification", {}) or {}
    return DeploySettings(
        mode=mode,
        rpc_url=str(net.get("rpc_url", "")),
        local_chain_ids=tuple(_to_int(c, "local_chain_ids") for c in net.get("local_chain_ids", [])),
        receipt_timeout_s=float(net.get("receipt_timeout_s", 180)),
        artifacts_dir=Path(dep.get("artifacts_dir", "artifacts")),
        output_dir=Path(dep.get("output_dir", "deployments")),
        on_deploy_failure=policy,
        deployer_address=dep.get("deployer_address") or None,
        addresses={str(k): str(v or "") for k, v in (cfg.get("addresses") or {}).items()},
        salts={str(k): str(v) for k, v in salts.items()},
        networks=_parse_networks(cfg.get("networks") or {}),
        verification=VerificationSettings(
            enabled=bool(ver.get("enabled", True)),
            api_url=str(ver.get("api_url", "")),
            api_key=str(ver.get("api_key", "") or ""),
            drain_timeout_s=float(ver.get("drain_timeout_s", 120)),
        ),
        plan=list(cfg.get("plan") or []),
    )


def required_address_settings(plan: List[Dict[str, Any]]) -> List[str]:
    """Address settings the plan depends on, deployer contract first."""
    names = ["deployer_contract"]
    for entry in plan:
        for arg in entry.get("constructor") or []:
            if isinstance(arg, dict) and arg.get("setting"):
                names.append(str(arg["setting"]))
        lifecycle = entry.get("lifecycle") or {}
        if lifecycle.get("owner_setting"):
            names.append(str(lifecycle["owner_setting"]))
        if entry.get("address_setting"):
            names.append(str(entry["address_setting"]))
    return list(dict.fromkeys(names))


def validate_addresses(settings: DeploySettings) -> Dict[str, str]:
    """Check every address the plan needs (and the deployer identity, if set). No network access."""
    resolved = {name: settings.address(name) for name in required_address_settings(settings.plan)}
    if settings.deployer_address is not None and not is_address(settings.deployer_address):
        raise ConfigurationError(f"Invalid Deployer Address: {settings.deployer_address!r}")
    return resolved
