"""
reconciler.py — Reconciliation of Store Credit with the Secondary Payment

Before an order enters the confirm state, store credit is allocated and the
single non-credit payment (a credit card) is adjusted to cover exactly what
the credits do not. Afterwards the valid payments must add up to the order
total, otherwise the order cannot be funded and the transition is blocked.
"""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from .allocator import apply_allocation, plan_allocation
from .errors import ConfigurationError, FundingError
from .models import ZERO, CreditCard, Order, Payment, PaymentState, ValidationErrorDetail
from .registry import PaymentMethodRegistry

log = logging.getLogger(__name__)


class ReconciliationResult(BaseModel):
    """
    Outcome of `reconcile_secondary_payment()`.

    Attributes:
        ok (bool): True if the valid payments equal the order total.
        remaining (Decimal): Amount the store credits left uncovered.
        secondary_payment_id (str, optional): The adjusted or invalidated card payment.
        error (ValidationErrorDetail, optional): Funding error attached to the order.
    """
    ok: bool
    remaining: Decimal
    secondary_payment_id: Optional[str] = None
    error: Optional[ValidationErrorDetail] = None


def find_secondary_payment(order: Order) -> Optional[Payment]:
    """
    Returns the order's single valid, not yet completed, non-credit payment.

    Raises:
        ConfigurationError: If more than one such payment exists.
    """
    others = [
        p for p in order.valid_payments()
        if p.state != PaymentState.COMPLETED and not p.is_store_credit
    ]
    if len(others) > 1:
        log.critical(f"[Order: {order.id}] {len(others)} Zweitzahlungen gefunden, erwartet höchstens 1.")
        raise ConfigurationError(f"Found {len(others)} payments and only expected 1")
    return others[0] if others else None


def check_funding(order: Order):
    """
    Verifies that the valid payments of an order add up to its total.

    Raises:
        FundingError: If the sum of valid payments differs from the order total.
    """
    payment_sum = sum((p.amount for p in order.valid_payments()), ZERO)
    if payment_sum != order.total:
        log.warning(f"[Order: {order.id}] Finanzierung fehlgeschlagen: Zahlungen {payment_sum} != Summe {order.total}.")
        raise FundingError(order.id, payment_sum, order.total)


def reconcile_secondary_payment(order: Order, registry: PaymentMethodRegistry) -> ReconciliationResult:
    """
    Allocates store credit and reconciles the secondary payment with the remainder.

    All configuration checks run before the order is modified, so a
    ConfigurationError leaves every payment as it was.

    Args:
        order (Order): The order about to be confirmed.
        registry (PaymentMethodRegistry): Source of the store credit payment method.

    Returns:
        ReconciliationResult: ok=False with a funding error when the payments
        do not match the order total. The error is also added to `order.errors`.

    Raises:
        ConfigurationError: Broken payment method setup, several secondary payments,
            or a secondary payment whose source is not a credit card.
    """
    log_prefix = f"[Order: {order.id}]"

    plan = plan_allocation(order, registry)
    other = find_secondary_payment(order)

    if other is not None and plan.remaining > ZERO and not isinstance(other.source, CreditCard):
        log.critical(f"{log_prefix} Zweitzahlung {other.id} hat nicht unterstützte Quelle '{other.source.source_type}'.")
        raise ConfigurationError(
            "Found unexpected payment method. Credit cards are the only other supported payment type"
        )

    apply_allocation(order, plan)

    if other is not None:
        if plan.remaining <= ZERO:
            if other.state == PaymentState.CHECKOUT:
                other.invalidate()
            else:
                other.void()
            log.info(f"{log_prefix} Zweitzahlung {other.id} vollständig durch Store Credit ersetzt.")
        else:
            other.amount = plan.remaining
            log.info(f"{log_prefix} Zweitzahlung {other.id} auf {plan.remaining} {order.currency} angepasst.")

    try:
        check_funding(order)
    except FundingError as e:
        order.add_error(e.field, e.message)
        return ReconciliationResult(
            ok=False,
            remaining=plan.remaining,
            secondary_payment_id=other.id if other else None,
            error=order.errors[-1],
        )

    return ReconciliationResult(
        ok=True,
        remaining=plan.remaining,
        secondary_payment_id=other.id if other else None,
    )
