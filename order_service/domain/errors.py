"""
Failure taxonomy.

Components hand these back inside ``Err`` values (see ``result.py``); only
the API layer turns them into HTTP responses.
"""


class OrderServiceError(Exception):
    """Base class for every failure reported to a caller."""


class MalformedRequest(OrderServiceError):
    """The request body is missing or does not have the expected shape."""


class InvalidStopCount(MalformedRequest):
    """Fewer than two stops were supplied."""


class ServiceAreaUnavailable(OrderServiceError):
    """A stop lies outside the region the routing provider can serve."""


class TransientProviderFailure(OrderServiceError):
    """The routing provider timed out or errored; the call may be retried."""


class ProviderRejectedRequest(OrderServiceError):
    """The routing provider refused the call outright, e.g. a bad API key."""


class OrderNotFound(OrderServiceError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class IllegalTransition(OrderServiceError):
    """Raised when an order status change violates the state machine."""
