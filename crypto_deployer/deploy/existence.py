"""Code-at-address check. RPC failures propagate as NetworkError, never as False."""

from __future__ import annotations

import logging

from ..core.errors import NetworkError
from ..providers.base import LedgerClient

logger = logging.getLogger(__name__)


class ExistenceChecker:
    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    def exists(self, address: str) -> bool:
        """True iff the ledger reports non-empty code at address."""
        try:
            code = self._client.get_code(address)
        except NetworkError:
            raise
        except Exception as exc:
            raise NetworkError(f"get_code({address}) failed: {type(exc).__name__}: {exc}") from exc
        present = len(code) > 0
        logger.debug("Code at %s: %d bytes", address, len(code))
        return present
