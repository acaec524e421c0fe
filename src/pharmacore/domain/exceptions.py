"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly.  Each concrete error carries the
structured details (product, quantities, statuses) a caller needs to build
its own message; the text passed to ``Exception`` is kept terse.

Callers distinguish three families:

- ``ValidationError`` / ``EntityNotFoundError``: the request is invalid.
- ``BusinessRuleViolation``: the request is valid but stock does not allow it.
- ``Contention``: transient conflict, safe to retry later.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""

    retryable = False


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class BusinessRuleViolation(DomainException):
    """The request is well-formed but current state forbids it."""


class ProductNotFound(EntityNotFoundError):

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: '{product_id}'")
        self.product_id = product_id


class OrderNotFound(EntityNotFoundError):

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order #{order_id} not found")
        self.order_id = order_id


class ProductInactive(ValidationError):

    def __init__(self, product_id: str, product_name: str) -> None:
        super().__init__(f"Product not available: {product_name}")
        self.product_id = product_id
        self.product_name = product_name


class PrescriptionRequired(ValidationError):

    def __init__(self, product_id: str, product_name: str) -> None:
        super().__init__(f"Prescription required for {product_name}")
        self.product_id = product_id
        self.product_name = product_name


class InvalidTransition(ValidationError):

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(f"Status transition not allowed: {from_status} -> {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class InsufficientStock(BusinessRuleViolation):

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product '{product_id}' "
            f"(need {requested}, have {available} available)"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class LedgerInconsistency(DomainException):
    """A movement's claimed ``stock_before`` does not match the tracker.

    Always fatal to the current operation: it means an update was lost
    somewhere upstream.  Never corrected silently.
    """

    def __init__(self, product_id: str, claimed: int, actual: int) -> None:
        super().__init__(
            f"Ledger mismatch for product '{product_id}' "
            f"(movement claims stock_before={claimed}, on hand is {actual})"
        )
        self.product_id = product_id
        self.claimed = claimed
        self.actual = actual


class Contention(DomainException):
    """Concurrent updates to the same record collided."""

    retryable = True

    def __init__(self, key: str, attempts: int = 1) -> None:
        super().__init__(f"Concurrent update on {key}, retry later")
        self.key = key
        self.attempts = attempts
