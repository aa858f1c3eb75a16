"""
updater.py — Order Payment State and Totals

Default implementation of the order-totals collaborator. It recomputes the
order's payment state and persists the payment total after payments change,
for example after a cancellation voided or refunded store credit.
"""

import logging

from .models import ZERO, Order, OrderState, PaymentState

log = logging.getLogger(__name__)


class OrderUpdater:

    def update_payment_state(self, order: Order) -> str:
        """
        Derives the payment state of an order from its payments.

        Rules, first match wins:
            - payments exist and all failed or were invalidated → 'failed'
            - order canceled and nothing paid  → 'void'
            - outstanding balance > 0          → 'balance_due'
            - outstanding balance < 0          → 'credit_owed'
            - otherwise                        → 'paid'

        Returns:
            str: The new payment state, also stored on the order.
        """
        if order.payments and all(p.state in (PaymentState.FAILED, PaymentState.INVALID) for p in order.payments):
            state = "failed"
        elif order.state == OrderState.CANCELED and order.payment_total == ZERO:
            state = "void"
        elif order.outstanding_balance > ZERO:
            state = "balance_due"
        elif order.outstanding_balance < ZERO:
            state = "credit_owed"
        else:
            state = "paid"

        if state != order.payment_state:
            log.info(f"[Order: {order.id}] Zahlungsstatus: {order.payment_state} -> {state}")
        order.payment_state = state
        return state

    def persist_totals(self, order: Order):
        order.payment_total = sum(
            (p.amount for p in order.payments if p.state == PaymentState.COMPLETED), ZERO
        )

    def update(self, order: Order):
        self.persist_totals(order)
        self.update_payment_state(order)
