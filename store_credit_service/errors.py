"""
errors.py — Exception Types of the Store Credit Service

Hierarchy:
    StoreCreditServiceError
    ├── ConfigurationError        (fatal, never retried)
    ├── FundingError              (recoverable, shown to the customer)
    ├── InvalidTransitionError    (illegal order or payment state change)
    ├── StoreCreditError
    │   └── InsufficientStoreCreditError
    ├── GiftCardIssuanceError
    └── NotFoundError
"""


class StoreCreditServiceError(Exception):
    """Base class for all errors raised by this service."""


class ConfigurationError(StoreCreditServiceError):
    """
    Raised when the payment setup of the environment or of an order is broken.

    Examples: zero or several store credit payment methods, more than one
    secondary payment on an order, or a secondary payment whose source is
    not a credit card. Not user-recoverable.
    """


class FundingError(StoreCreditServiceError):
    """
    Raised by `check_funding()` when the valid payments of an order do not add
    up to its total.

    The reconciler and the before-complete hook catch it and attach a
    validation error built from `field` and `message` to the order, so
    callers see a failed result instead of an exception.
    """

    field = "base"
    default_message = "unable to fund order"

    def __init__(self, order_id: str, payment_sum, total, message: str = None):
        self.order_id = order_id
        self.payment_sum = payment_sum
        self.total = total
        self.message = message or self.default_message
        super().__init__(f"{self.message} (order {order_id}: payments {payment_sum} != total {total})")


class InvalidTransitionError(StoreCreditServiceError):
    """Raised for an order or payment state change that is not allowed."""


class StoreCreditError(StoreCreditServiceError):
    """Raised when a store credit balance operation cannot be performed."""


class InsufficientStoreCreditError(StoreCreditError):
    """Raised when an operation would overdraw a store credit."""


class GiftCardIssuanceError(StoreCreditServiceError):
    """Raised when the gift card service rejects or misses an issuance request."""


class NotFoundError(StoreCreditServiceError):
    """Raised when an order, customer or payment method is unknown."""
