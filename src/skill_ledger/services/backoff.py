"""Bounded exponential backoff for ledger and store calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from skill_ledger.errors import NetworkError, NotFoundError, VerificationTimeoutError

if TYPE_CHECKING:
    from skill_ledger.adapters.algorand_client import LedgerClient
    from skill_ledger.domain.ledger import LedgerTransaction

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Attempt budget and delay schedule for retried calls."""

    attempts: int = 3
    initial_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 8.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")

    def delays(self) -> Iterator[float]:
        """Yield the delay to wait before each retry."""
        delay = self.initial_delay_seconds
        for _ in range(self.attempts - 1):
            yield delay
            delay = min(delay * self.multiplier, self.max_delay_seconds)


async def call_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    retry_on: tuple[type[Exception], ...],
    policy: BackoffPolicy,
    action: str,
) -> T:
    """Await func, retrying retry_on errors until the policy is exhausted.

    The last error is re-raised once the attempt budget is spent. Errors not
    listed in retry_on, and cancellation, propagate immediately.
    """
    delays = policy.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on as exc:
            delay = next(delays, None)
            if delay is None:
                _logger.warning(
                    "%s failed after %s attempt(s): %s", action, attempt, exc
                )
                raise
            _logger.info(
                "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                action,
                attempt,
                policy.attempts,
                delay,
                exc,
            )
            await asyncio.sleep(delay)


async def wait_for_confirmation(
    ledger_client: "LedgerClient",
    transaction_id: str,
    policy: BackoffPolicy,
) -> "LedgerTransaction":
    """Poll the indexer until transaction_id is confirmed.

    Raises VerificationTimeoutError when the transaction is still unconfirmed
    after the policy's attempt budget.
    """
    try:
        return await call_with_backoff(
            lambda: ledger_client.lookup_transaction(transaction_id),
            retry_on=(NotFoundError, NetworkError),
            policy=policy,
            action=f"lookup {transaction_id}",
        )
    except NotFoundError as exc:
        raise VerificationTimeoutError(
            f"Transaction {transaction_id} unconfirmed after "
            f"{policy.attempts} attempt(s)"
        ) from exc
