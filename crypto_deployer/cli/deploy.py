"""
Deploy the configured plan through the shared deployer contract.

Exit: 0 done (including artifacts skipped under on_deploy_failure=continue),
1 fatal error, 2 configuration error.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from typing import List, Optional

from ..config import validate_addresses
from ..core.errors import ConfigurationError, CryptoDeployerError
from ..deploy.artifacts import ArtifactStore, build_plan
from ..deploy.orchestrator import DeploymentOrchestrator
from ..output import deployment_path, write_json
from ..providers.rpc import JsonRpcClient
from ..providers.verifier import EtherscanVerifier
from .common import EXIT_CONFIG, EXIT_FATAL, EXIT_OK, add_common_args, settings_from_args, setup_logging

logger = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crypto-deployer deploy", description=__doc__.strip().splitlines()[0])
    add_common_args(parser)
    parser.add_argument(
        "--only",
        action="append",
        default=[],
        metavar="NAME",
        help="Deploy only these artifacts (repeatable); others are resolved read-only",
    )
    parser.add_argument("--no-verify", action="store_true", help="Skip source verification")
    parser.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Log and continue past a failed artifact deployment instead of aborting",
    )
    parser.add_argument("--out", default=None, help="Write the report JSON here (default: output_dir)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = settings_from_args(args)
        if args.continue_on_failure:
            settings = dataclasses.replace(settings, on_deploy_failure="continue")
        validate_addresses(settings)
        artifacts = build_plan(settings.plan, settings.salts, ArtifactStore(settings.artifacts_dir))
        client = JsonRpcClient(settings.rpc_url)

        verifier = None
        if settings.verification.enabled and not args.no_verify:
            verifier = EtherscanVerifier(
                api_key=settings.verification.api_key,
                api_url=settings.verification.api_url,
                chain_id=client.chain_id(),
            )

        orchestrator = DeploymentOrchestrator(settings, client, artifacts, verifier=verifier, only=args.only)
        report = orchestrator.run()
    except ConfigurationError as exc:
        print(f"[FAIL] configuration: {exc}", flush=True)
        return EXIT_CONFIG
    except CryptoDeployerError as exc:
        print(f"[FAIL] {type(exc).__name__}: {exc}", flush=True)
        return EXIT_FATAL

    print("Deployed Contracts:", json.dumps(report.record.as_dict(), indent=2), flush=True)
    out = args.out or deployment_path(settings.output_dir, report.chain_id, settings.mode)
    write_json(report.as_dict(), out)
    print(f"Report written to {out}", flush=True)
    for failed in report.failed:
        print(f"[WARN] {failed.name} not deployed: {failed.error}", flush=True)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
