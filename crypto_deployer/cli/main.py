"""
Top-level CLI dispatcher: crypto-deployer <command> [args...].
All commands dispatch to package CLI modules or doctor.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .. import __version__

_COMMANDS = {
    "deploy": "Deploy the plan (deploy-or-skip, verify, stake, transfer ownership)",
    "plan": "Print derived addresses for the plan without sending transactions",
    "doctor": "Preflight checks: config, RPC, deployer contract, artifacts",
}


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(
        prog="crypto-deployer",
        description="Deterministic contract deployment through a shared deployer contract",
    )
    parser.add_argument("--version", action="version", version=f"crypto-deployer {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="command")
    for name, help_text in _COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    args, rest = parser.parse_known_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    cmd = args.command
    if cmd == "deploy":
        from crypto_deployer.cli import deploy as mod

        return mod.main(rest)
    if cmd == "plan":
        from crypto_deployer.cli import plan as mod

        return mod.main(rest)
    if cmd == "doctor":
        from crypto_deployer.doctor import main as doctor_main

        return doctor_main(rest)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
