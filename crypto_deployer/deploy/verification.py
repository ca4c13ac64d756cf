"""
Best-effort source verification on a detached worker.

verify() queues a request and returns immediately. Each request ends as a
VerificationResult on the notifier's own channel; nothing raised here ever
reaches the deployment path.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence

from eth_utils import to_hex

from ..core.errors import VerificationError
from ..providers.verifier import VerificationSource
from .contracts import encode_constructor_args

logger = logging.getLogger(__name__)


SourceLoader = Callable[[], Optional[VerificationSource]]


class Verifier(Protocol):
    def submit(self, address: str, source: VerificationSource, encoded_args_hex: str) -> str: ...


@dataclass(frozen=True)
class VerificationResult:
    name: str
    address: str
    ok: bool
    detail: str


class VerificationNotifier:
    """Fire-and-forget verification. Disabled when verifier is None."""

    def __init__(self, verifier: Optional[Verifier], max_workers: int = 1) -> None:
        self._verifier = verifier
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="verify") if verifier else None
        )
        self._pending: List[Future] = []
        self._results: List[VerificationResult] = []

    @property
    def enabled(self) -> bool:
        return self._verifier is not None

    def _run(
        self,
        name: str,
        address: str,
        source: Optional[VerificationSource],
        load_source: Optional[SourceLoader],
        types: Sequence[str],
        args: Sequence[Any],
    ) -> VerificationResult:
        try:
            if source is None and load_source is not None:
                source = load_source()
            if source is None:
                raise VerificationError("no build info available")
            encoded = to_hex(encode_constructor_args(types, args))
            detail = self._verifier.submit(address, source, encoded)  # type: ignore[union-attr]
        except Exception as exc:
            logger.warning("Error while verifying %s at %s: %s", name, address, exc)
            return VerificationResult(name=name, address=address, ok=False, detail=str(exc))
        logger.info("Verification submitted for %s at %s: %s", name, address, detail)
        return VerificationResult(name=name, address=address, ok=True, detail=detail)

    def verify(
        self,
        name: str,
        address: str,
        constructor_types: Sequence[str],
        constructor_args: Sequence[Any],
        source: Optional[VerificationSource] = None,
        load_source: Optional[SourceLoader] = None,
    ) -> None:
        """
        Queue one verification. load_source runs on the worker, so unreadable
        build info ends as a failed VerificationResult.
        """
        if self._executor is None:
            logger.debug("Verification disabled; skipping %s", name)
            return
        logger.info("Attempting to verify %s...", name)
        self._pending.append(
            self._executor.submit(
                self._run,
                name,
                address,
                source,
                load_source,
                list(constructor_types),
                list(constructor_args),
            )
        )

    def drain(self, timeout_s: Optional[float] = None) -> List[VerificationResult]:
        """Collect finished results; requests still running after timeout_s are reported as pending."""
        if self._pending:
            done, not_done = wait(self._pending, timeout=timeout_s)
            for fut in done:
                self._results.append(fut.result())
            for _ in not_done:
                logger.warning("Verification still pending at shutdown")
            self._pending = list(not_done)
        return list(self._results)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
