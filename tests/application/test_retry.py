"""Tests for whole-unit retry on contention."""

import pytest

from pharmacore.application.create_order import CreateOrderHandler
from pharmacore.application.dto import CreateOrderRequest, OrderItemSpec
from pharmacore.application.retrying import RetryPolicy, with_retry
from pharmacore.domain.exceptions import Contention, InsufficientStock
from tests.fakes import DELIVERY_FEE, ConflictingStore, RecordingSink, seeded_store


class TestWithRetry:

    def test_returns_first_success(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise Contention("stock:P001")
            return "ok"

        delays = []
        assert with_retry(flaky, RetryPolicy(max_attempts=5), sleep=delays.append) == "ok"
        assert len(calls) == 3
        assert len(delays) == 2

    def test_gives_up_with_attempt_count(self):
        def always_conflicts():
            raise Contention("order:7")

        with pytest.raises(Contention) as exc_info:
            with_retry(always_conflicts, RetryPolicy(max_attempts=3), sleep=lambda _: None)
        assert exc_info.value.attempts == 3
        assert exc_info.value.key == "order:7"
        assert exc_info.value.retryable

    def test_business_errors_are_not_retried(self):
        calls = []

        def rejected():
            calls.append(1)
            raise InsufficientStock("P001", 5, 2)

        with pytest.raises(InsufficientStock):
            with_retry(rejected, RetryPolicy(max_attempts=5), sleep=lambda _: None)
        assert len(calls) == 1

    def test_backoff_grows(self):
        policy = RetryPolicy(base_delay=0.01)
        assert policy.delay(1) <= 0.015
        assert policy.delay(4) >= 0.04


class TestHandlerRetry:

    def _handler(self, store, sink=None, attempts=5):
        return CreateOrderHandler(
            store.unit_of_work,
            DELIVERY_FEE,
            RetryPolicy(max_attempts=attempts, base_delay=0),
            on_committed=sink or RecordingSink(),
        )

    def test_conflicting_commit_is_redone_from_scratch(self):
        store = seeded_store(stock={"P001": 10}, store=ConflictingStore())
        store.failures = 2
        sink = RecordingSink()

        dto = self._handler(store, sink).handle(
            CreateOrderRequest("C-1", [OrderItemSpec("P001", 4)]), actor="a"
        )

        assert store.stock_level("P001").reserved == 4
        assert len(store.orders()) == 1
        # events of failed attempts are never published
        assert len(sink.events) == 1
        assert store.order(dto.id).items[0].reserved_quantity == 4

    def test_persistent_conflict_surfaces_as_contention(self):
        store = seeded_store(stock={"P001": 10}, store=ConflictingStore())
        store.failures = 10
        sink = RecordingSink()

        with pytest.raises(Contention) as exc_info:
            self._handler(store, sink, attempts=3).handle(
                CreateOrderRequest("C-1", [OrderItemSpec("P001", 4)]), actor="a"
            )

        assert exc_info.value.attempts == 3
        assert store.stock_level("P001").reserved == 0
        assert store.orders() == []
        assert sink.events == []
