"""
queries.py — Read-only Store Credit Queries

Helpers used by the checkout flow and the API to show how much store
credit applies to an order. None of them modifies the order.
"""

from decimal import Decimal

from pydantic import BaseModel

from .models import ZERO, Order, OrderState


def is_fully_covered_by_store_credit(order: Order) -> bool:
    if order.customer is None:
        return False
    return order.customer.total_available_store_credit >= order.total


def requires_payment(order: Order) -> bool:
    return not is_fully_covered_by_store_credit(order)


def total_available_credit(order: Order) -> Decimal:
    if order.customer is None:
        return ZERO
    return order.customer.total_available_store_credit


def total_applicable_credit(order: Order) -> Decimal:
    """
    Store credit that applies to the order.

    In confirm and complete this is the sum of the valid store credit
    payments actually recorded. Before that it is an estimate for display:
    the smaller of the order total and the available credit.
    """
    if order.state in (OrderState.CONFIRM, OrderState.COMPLETE):
        return sum((p.amount for p in order.store_credit_payments() if p.is_valid), ZERO)
    return min(order.total, total_available_credit(order))


def remainder_after_credit(order: Order) -> Decimal:
    return order.total - total_applicable_credit(order)


def using_store_credit(order: Order) -> bool:
    return total_applicable_credit(order) > ZERO


def store_credit_remaining_after_capture(order: Order) -> Decimal:
    return total_available_credit(order) - total_applicable_credit(order)


class StoreCreditSummary(BaseModel):
    orderId: str
    currency: str
    state: OrderState
    fullyCovered: bool
    paymentRequired: bool
    usingStoreCredit: bool
    totalAvailable: Decimal
    totalApplicable: Decimal
    orderTotalAfterStoreCredit: Decimal
    remainingAfterCapture: Decimal


def store_credit_summary(order: Order) -> StoreCreditSummary:
    return StoreCreditSummary(
        orderId=order.id,
        currency=order.currency,
        state=order.state,
        fullyCovered=is_fully_covered_by_store_credit(order),
        paymentRequired=requires_payment(order),
        usingStoreCredit=using_store_credit(order),
        totalAvailable=total_available_credit(order),
        totalApplicable=total_applicable_credit(order),
        orderTotalAfterStoreCredit=remainder_after_credit(order),
        remainingAfterCapture=store_credit_remaining_after_capture(order),
    )
