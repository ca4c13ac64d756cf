"""
Print the deterministic address of every artifact in the plan.

Pure computation from the deployer contract address and the mode's salts;
with --check the ledger is also asked which addresses already hold code.
Local-only entries (the entry point) resolve to their configured address
once the chain is known to be non-local.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional

from ..config import DeploySettings
from ..core.errors import ConfigurationError, CryptoDeployerError
from ..deploy.address import AddressDeriver, derive_salt
from ..deploy.existence import ExistenceChecker
from ..providers.rpc import JsonRpcClient
from .common import EXIT_CONFIG, EXIT_FATAL, EXIT_OK, add_common_args, settings_from_args, setup_logging


def derived_addresses(
    settings: DeploySettings, factory_address: str, chain_id: Optional[int] = None
) -> Dict[str, str]:
    """
    name -> address for each plan entry, in plan order.

    chain_id None means the chain is unknown and every entry is derived.
    """
    deriver = AddressDeriver()
    out: Dict[str, str] = {}
    for entry in settings.plan:
        name = str(entry["name"])
        setting = entry.get("address_setting")
        if entry.get("local_only") and setting and chain_id is not None and not settings.is_local_chain(chain_id):
            out[name] = settings.address(str(setting))
            continue
        salt = settings.salts.get(str(entry.get("salt", "")))
        if not salt:
            raise ConfigurationError(f"{name}: no salt configured for key {entry.get('salt')!r}")
        out[name] = deriver.derive(factory_address, derive_salt(salt))
    return out


def _note_local_only(settings: DeploySettings) -> None:
    for entry in settings.plan:
        setting = entry.get("address_setting")
        if entry.get("local_only") and setting:
            print(
                f"[NOTE] {entry['name']}: derived address applies on local chains only; "
                f"other chains use {setting} = {settings.addresses.get(setting, '')}",
                file=sys.stderr,
                flush=True,
            )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="crypto-deployer plan", description=__doc__.strip().splitlines()[0])
    add_common_args(parser)
    parser.add_argument("--check", action="store_true", help="Also query the ledger for existing code")
    parser.add_argument(
        "--chain-id",
        type=int,
        default=None,
        help="Resolve for this chain without contacting it (ignored with --check)",
    )
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = settings_from_args(args)
        factory = settings.address("deployer_contract")
        if not args.check:
            if args.chain_id is None:
                _note_local_only(settings)
            addresses = derived_addresses(settings, factory, args.chain_id)
            print(json.dumps(addresses, indent=2), flush=True)
            return EXIT_OK
        client = JsonRpcClient(settings.rpc_url)
        addresses = derived_addresses(settings, factory, client.chain_id())
        checker = ExistenceChecker(client)
        rows = {name: {"address": addr, "deployed": checker.exists(addr)} for name, addr in addresses.items()}
    except ConfigurationError as exc:
        print(f"[FAIL] configuration: {exc}", flush=True)
        return EXIT_CONFIG
    except CryptoDeployerError as exc:
        print(f"[FAIL] {type(exc).__name__}: {exc}", flush=True)
        return EXIT_FATAL
    print(json.dumps(rows, indent=2), flush=True)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
