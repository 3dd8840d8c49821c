"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  The API
layer (Views) catches these and translates them into HTTP responses.
"""

from __future__ import annotations

from modules.core.exceptions import StoreUnavailable


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidTransition(Exception):
    """The requested status is unknown or not reachable from the current one.

    Raised before any mutation; nothing is written and nothing notified.
    """

    def __init__(self, current_status: str | None, target_status: str) -> None:
        self.current_status = current_status
        self.target_status = target_status
        if current_status is None:
            message = f"Unknown order status '{target_status}'."
        else:
            message = f"Cannot transition from {current_status} to {target_status}."
        super().__init__(message)


class ConcurrentConflict(StoreUnavailable):
    """Another writer kept winning the version check-and-set.

    Surfaced after the bounded retries are exhausted.
    """


class InactiveProduct(Exception):
    """The product referenced by the order is not active."""


class FarmerNotVerified(Exception):
    """The product's farmer has not been verified by an administrator."""
