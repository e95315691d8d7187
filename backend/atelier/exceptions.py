"""
Atelier Tracker - Error Taxonomy

Services raise these; routers translate them into HTTP responses.
A raised error never leaves an order partially updated.
"""
from typing import Dict, Optional


class TrackerError(Exception):
    """Base class for tracker errors."""
    pass


class ValidationError(TrackerError):
    """
    Raised when a mutation is missing required input.

    `errors` maps field name -> human readable message so a form layer
    can re-prompt field by field.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class NotFoundError(TrackerError):
    """Raised by a store when a token or id does not resolve to an order."""

    def __init__(self, ref: str):
        super().__init__(f"Order not found: {ref}")
        self.ref = ref


class ConflictError(TrackerError):
    """Raised by a store when a save is based on a stale version."""

    def __init__(self, order_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(saving version {expected_version}, stored version {actual_version})"
        )
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version
