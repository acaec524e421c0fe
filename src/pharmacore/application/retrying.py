"""Retry of whole units of work on optimistic-concurrency conflicts."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from pharmacore.domain.events import DomainEvent, EventSink, discard
from pharmacore.domain.exceptions import Contention
from pharmacore.domain.repository.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 0.01  # seconds

    def delay(self, attempt: int) -> float:
        """Jittered exponential backoff before attempt ``attempt + 1``."""
        return self.base_delay * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)


def with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` until it stops raising Contention.

    Only Contention is retried.  After ``policy.max_attempts`` failures the
    last conflict is re-raised with the number of attempts made.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except Contention as exc:
            if attempt >= policy.max_attempts:
                logger.warning("contention_gave_up", key=exc.key, attempts=attempt)
                raise Contention(exc.key, attempts=attempt) from exc
            logger.warning("contention_retry", key=exc.key, attempt=attempt)
            sleep(policy.delay(attempt))
            attempt += 1


def run_unit_of_work(
    uow_factory: Callable[[], UnitOfWork],
    work: Callable[[UnitOfWork], T],
    policy: RetryPolicy,
    on_committed: EventSink = discard,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``work`` in a fresh unit of work, commit, then publish its events.

    Each retry starts from a new unit of work, so every read is redone
    against the latest committed state.
    """

    def attempt() -> tuple[T, list[DomainEvent]]:
        with uow_factory() as uow:
            result = work(uow)
            uow.commit()
            return result, list(uow.events)

    result, events = with_retry(attempt, policy, sleep)
    for event in events:
        on_committed(event)
    return result
