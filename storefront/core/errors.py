# storefront/core/errors.py
"""Domain exceptions for the order back office."""


class StorefrontError(Exception):
    """Base exception for all storefront order errors."""

    pass


class OrderNotFoundError(StorefrontError):
    """Raised when an order id does not exist in the collection."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderValidationError(StorefrontError):
    """Raised when a draft or update is rejected before touching the store."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        self.errors = errors or []
        super().__init__(message)


class InvalidTransitionError(OrderValidationError):
    """Raised in strict mode when a status change is not in the transition table."""

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Invalid status transition: {current} -> {new}")


class PersistenceError(StorefrontError):
    """Raised when the backing store cannot be read or written."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"Failed to persist orders ({operation})"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class ConcurrencyConflictError(StorefrontError):
    """Raised when a conditional write finds a newer version than expected."""

    def __init__(self, order_id: str, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class CorruptDocumentError(StorefrontError):
    """Raised when a persisted order document cannot be parsed."""

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Corrupt order document {order_id}: {reason}")
