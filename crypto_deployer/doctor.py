"""
System doctor: preflight checks for env, deps, config, RPC, deployer contract and artifacts.
Run: python -m crypto_deployer doctor
Exit: 0 all OK, 2 env/deps, 3 config/artifacts, 4 ledger.
Sends no transactions.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .config import DeploySettings, load_settings, validate_addresses
from .core.errors import ConfigurationError, CryptoDeployerError
from .providers.base import ProviderHealth, ProviderStatus

DEPENDENCIES = ["requests", "yaml", "eth_abi", "eth_utils"]


def _in_venv() -> bool:
    return getattr(sys, "prefix", None) != getattr(sys, "base_prefix", None)


def check_env() -> bool:
    """Informational: warn (do not fail) outside a virtual environment."""
    if _in_venv():
        print(f"[OK] venv active  python={sys.executable}")
    else:
        print(f"[WARN] not inside a virtual environment  python={sys.executable}")
    return True


def check_dependencies() -> bool:
    """Return True if all required packages import; else print pip install and return False."""
    missing = []
    for pkg in DEPENDENCIES:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)
    if not missing:
        print("[OK] dependencies  " + " ".join(DEPENDENCIES))
        return True
    print("[FAIL] Missing packages: " + ", ".join(missing))
    print("  Fix: python -m pip install -e .")
    return False


def check_config() -> Optional[DeploySettings]:
    """Load settings and validate every configured address. No network."""
    try:
        settings = load_settings()
        addresses = validate_addresses(settings)
    except ConfigurationError as e:
        print(f"[FAIL] config: {e}")
        return None
    print(f"[OK] config  mode={settings.mode}  rpc={settings.rpc_url}")
    for name, addr in addresses.items():
        print(f"     {name}: {addr}")
    return settings


def check_artifacts(settings: DeploySettings) -> bool:
    from .deploy.artifacts import ArtifactStore, build_plan

    try:
        plan = build_plan(settings.plan, settings.salts, ArtifactStore(settings.artifacts_dir))
    except ConfigurationError as e:
        print(f"[FAIL] artifacts: {e}")
        print("  Fix: compile the contracts (npx hardhat compile) or set deployment.artifacts_dir")
        return False
    print(f"[OK] artifacts  {len(plan)} plan entries under {settings.artifacts_dir}")
    return True


def print_health(health: ProviderHealth) -> None:
    tag = "[OK]" if health.status is ProviderStatus.OK else "[WARN]"
    line = f"{tag} rpc health  {health.provider_name}  status={health.status.value}  failures={health.fail_count}"
    if health.last_error:
        line += f"  last_error={health.last_error}"
    print(line)


def check_ledger(settings: DeploySettings) -> bool:
    """RPC reachable, chain has a network profile, deployer contract has code."""
    from .deploy.existence import ExistenceChecker
    from .providers.rpc import JsonRpcClient

    client = JsonRpcClient(settings.rpc_url)
    try:
        chain_id = client.chain_id()
        print(f"[OK] rpc  chainId={chain_id}")
        profile = settings.network_profile(chain_id)
        print(f"[OK] network profile  gas={profile.gas or 'node default'}  stake={sorted(profile.stake)}")
        factory = settings.address("deployer_contract")
        if not ExistenceChecker(client).exists(factory):
            print(f"[FAIL] Deployer contract not deployed on chain {chain_id} at {factory}")
            return False
        print(f"[OK] deployer contract  {factory}")
    except CryptoDeployerError as e:
        print(f"[FAIL] ledger: {e}")
        return False
    finally:
        print_health(client.health)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="crypto-deployer doctor", description="Preflight checks")
    parser.add_argument("--offline", action="store_true", help="Skip RPC checks")
    args = parser.parse_args(argv)

    check_env()
    if not check_dependencies():
        return 2
    settings = check_config()
    if settings is None or not check_artifacts(settings):
        return 3
    if not args.offline and not check_ledger(settings):
        return 4
    print("[OK] doctor  all checks passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
