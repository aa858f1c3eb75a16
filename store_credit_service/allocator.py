"""
allocator.py — Store Credit Allocation

Decides how much of an order's outstanding balance is covered by the
customer's store credits and records that decision as payments.

Allocation runs in two phases:
    1. plan_allocation()  — pure computation of the target draw per credit.
                            All configuration checks happen here.
    2. apply_allocation() — diffs the plan against the order's existing
                            store credit payments and applies the minimal
                            set of create/invalidate operations.

Because nothing is mutated before the plan exists, a configuration error
leaves the order untouched, and running the allocation twice on an
unchanged order keeps the same payments.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from .models import ZERO, Order, Payment, PaymentMethod, PaymentState, StoreCredit
from .registry import PaymentMethodRegistry

log = logging.getLogger(__name__)


class AllocationEntry(BaseModel):
    credit: StoreCredit
    amount: Decimal


class AllocationPlan(BaseModel):
    """
    Target allocation of an order.

    Attributes:
        remaining (Decimal): Part of the outstanding balance no credit covers.
        entries (List[AllocationEntry]): Draws in priority order, never zero.
        payment_method (PaymentMethod, optional): Store credit method used for
            the draws; None when the customer holds no credits.
    """
    remaining: Decimal
    entries: List[AllocationEntry] = []
    payment_method: Optional[PaymentMethod] = None


def plan_allocation(order: Order, registry: PaymentMethodRegistry) -> AllocationPlan:
    """
    Computes the greedy, priority-ordered draw-down for an order.

    Args:
        order (Order): The order to allocate against.
        registry (PaymentMethodRegistry): Source of the store credit payment method.

    Returns:
        AllocationPlan: The target draws and the uncovered remainder.

    Raises:
        ConfigurationError: If the customer holds credits but the environment
            does not have exactly one store credit payment method.
    """
    remaining = order.outstanding_balance
    customer = order.customer

    if customer is None or not customer.store_credits:
        return AllocationPlan(remaining=remaining)

    payment_method = registry.find_single_store_credit_method()

    entries = []
    for credit in customer.store_credits_by_priority():
        if remaining <= ZERO:
            break
        if credit.amount_remaining <= ZERO:
            continue

        amount_to_take = min(credit.amount_remaining, remaining)
        entries.append(AllocationEntry(credit=credit, amount=amount_to_take))
        remaining -= amount_to_take

    return AllocationPlan(remaining=remaining, entries=entries, payment_method=payment_method)


def apply_allocation(order: Order, plan: AllocationPlan) -> List[Payment]:
    """
    Brings the order's store credit payments in line with a plan.

    Steps:
        - Payments in state 'invalid' are removed from the order for good.
        - Checkout store credit payments matching an unclaimed plan entry
          (same credit, same amount, same method) are kept.
        - All other checkout store credit payments are invalidated.
        - Plan entries without a matching payment get a new checkout payment
          with a fresh authorization code from the credit.

    Args:
        order (Order): The order to update.
        plan (AllocationPlan): Result of `plan_allocation()` for this order.

    Returns:
        List[Payment]: The payments created by this call.
    """
    log_prefix = f"[Order: {order.id}]"

    discarded = [p for p in order.payments if p.state == PaymentState.INVALID]
    if discarded:
        order.payments = [p for p in order.payments if p.state != PaymentState.INVALID]
        log.info(f"{log_prefix} {len(discarded)} ungültige Zahlung(en) entfernt.")

    unclaimed = list(plan.entries)
    for payment in order.store_credit_payments():
        if payment.state != PaymentState.CHECKOUT:
            continue

        match_index = _find_matching_entry(payment, unclaimed, plan.payment_method)
        if match_index is not None:
            unclaimed.pop(match_index)
            continue

        payment.invalidate()
        log.info(f"{log_prefix} Veraltete Store-Credit-Zahlung {payment.id} ({payment.amount}) invalidiert.")

    created = []
    for entry in unclaimed:
        payment = Payment(
            amount=entry.amount,
            state=PaymentState.CHECKOUT,
            source=entry.credit,
            payment_method=plan.payment_method,
            response_code=entry.credit.generate_authorization_code(),
        )
        order.payments.append(payment)
        created.append(payment)
        log.info(f"{log_prefix} Store Credit {entry.credit.id} (Priorität {entry.credit.priority}) "
                 f"mit {entry.amount} {order.currency} belastet.")

    return created


def _find_matching_entry(payment: Payment, entries: List[AllocationEntry], payment_method) -> Optional[int]:
    if payment_method is None or payment.payment_method.id != payment_method.id:
        return None
    for index, entry in enumerate(entries):
        if entry.credit.id == payment.source.id and entry.amount == payment.amount:
            return index
    return None


def allocate(order: Order, registry: PaymentMethodRegistry) -> Decimal:
    """
    Charges as much store credit as possible against the order.

    Args:
        order (Order): The order to allocate against.
        registry (PaymentMethodRegistry): Source of the store credit payment method.

    Returns:
        Decimal: The outstanding amount left for another payment method.

    Raises:
        ConfigurationError: See `plan_allocation()`. No payment is touched in that case.
    """
    plan = plan_allocation(order, registry)
    apply_allocation(order, plan)
    log.info(f"[Order: {order.id}] Store-Credit-Zuteilung abgeschlossen. Restbetrag: {plan.remaining} {order.currency}")
    return plan.remaining
