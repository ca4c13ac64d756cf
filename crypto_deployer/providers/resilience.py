"""
Resilience primitives: circuit breaker and retry with exponential backoff.

These wrap ledger reads so transient RPC failures are retried and a dead
endpoint is short-circuited. Transaction submission is never wrapped: a
retried send could land twice under different nonces.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry with exponential backoff."""
    max_retries: int = 3
    base_delay_s: float = 0.5
    max_delay_s: float = 10.0
    backoff_factor: float = 1.5
    retry_on_status_codes: tuple[int, ...] = (429, 500, 502, 503, 504)
    # Only these exception types are retried; anything else propagates at once.
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)


@dataclass
class CircuitBreaker:
    """
    Circuit breaker preventing repeated calls to a failing endpoint.

    States:
    - CLOSED: Normal operation, requests pass through.
    - OPEN: Endpoint is failing, requests are short-circuited.
    - HALF_OPEN: After cooldown, one probe request is allowed.

    Transitions:
    - CLOSED -> OPEN: After `failure_threshold` consecutive failures.
    - OPEN -> HALF_OPEN: After `cooldown_seconds` elapse.
    - HALF_OPEN -> CLOSED: If the probe succeeds.
    - HALF_OPEN -> OPEN: If the probe fails.
    """
    provider_name: str
    failure_threshold: int = 3
    cooldown_seconds: float = 30.0
    _failure_count: int = field(default=0, init=False, repr=False)
    _state: str = field(default="CLOSED", init=False, repr=False)
    _last_failure_time: Optional[float] = field(default=None, init=False, repr=False)
    _last_error: Optional[str] = field(default=None, init=False, repr=False)

    @property
    def state(self) -> str:
        if self._state == "OPEN" and self._last_failure_time is not None:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.cooldown_seconds:
                self._state = "HALF_OPEN"
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = "CLOSED"
        self._last_error = None

    def record_failure(self, error: str) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        self._last_error = error[:500]
        if self._failure_count >= self.failure_threshold:
            self._state = "OPEN"
            logger.warning(
                "Circuit breaker OPEN for %s after %d failures: %s",
                self.provider_name, self._failure_count, error[:200],
            )

    def reset(self) -> None:
        self._failure_count = 0
        self._state = "CLOSED"
        self._last_failure_time = None
        self._last_error = None


class CircuitOpenError(RuntimeError):
    """Raised by resilient_call when the breaker short-circuits the call."""


def resilient_call(
    func: Callable[..., T],
    *args: Any,
    retry_config: Optional[RetryConfig] = None,
    circuit_breaker: Optional[CircuitBreaker] = None,
    **kwargs: Any,
) -> T:
    """
    Execute a read with retry + circuit breaker protection.

    Exceptions outside retry_config.retry_on propagate immediately and do not
    count against the breaker. Raises the last exception if all retries are
    exhausted, or CircuitOpenError if the breaker is open.
    """
    cfg = retry_config or RetryConfig()

    if circuit_breaker and circuit_breaker.is_open:
        raise CircuitOpenError(
            f"Circuit breaker OPEN for {circuit_breaker.provider_name}: "
            f"{circuit_breaker.last_error}"
        )

    last_err: Optional[BaseException] = None
    for attempt in range(1, cfg.max_retries + 1):
        try:
            result = func(*args, **kwargs)
            if circuit_breaker:
                circuit_breaker.record_success()
            return result
        except cfg.retry_on as exc:
            last_err = exc
            err_msg = f"{type(exc).__name__}: {exc}"
            logger.debug(
                "Attempt %d/%d failed: %s", attempt, cfg.max_retries, err_msg
            )
            if attempt < cfg.max_retries:
                delay = min(
                    cfg.base_delay_s * (cfg.backoff_factor ** (attempt - 1)),
                    cfg.max_delay_s,
                )
                time.sleep(delay)

    if circuit_breaker and last_err:
        circuit_breaker.record_failure(str(last_err))

    raise last_err  # type: ignore[misc]
