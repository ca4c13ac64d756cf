"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import crypto_deployer; use crypto_deployer.core, crypto_deployer.deploy, etc.
Does not import cli.
"""

from __future__ import annotations

from . import core, deploy, providers
from ._version import __version__

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "core",
    "deploy",
    "providers",
]
