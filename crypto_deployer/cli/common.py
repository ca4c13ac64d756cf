"""Shared CLI plumbing: common flags, logging setup, settings loading."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict

from ..config import DeploySettings, get_config, load_settings

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint (overrides config/env)")
    parser.add_argument("--mode", choices=["DEV", "PROD"], default=None, help="Deployment mode")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("CRYPTO_DEPLOYER_LOG_LEVEL", "INFO"),
        help="Logging level (default INFO)",
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def settings_from_args(args: argparse.Namespace) -> DeploySettings:
    """Merged config with CLI flags applied last. Raises ConfigurationError."""
    cfg: Dict[str, Any] = get_config(args.config, mode=args.mode)
    if args.rpc_url:
        cfg.setdefault("network", {})["rpc_url"] = args.rpc_url
    return load_settings(cfg)
