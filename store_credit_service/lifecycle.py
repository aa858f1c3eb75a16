"""
lifecycle.py — Order Checkout State Machine

An explicit finite state machine for the checkout of one order. Other
modules register plain functions against named hook points:

    before_enter(states, hook)  — runs before the order enters a state.
                                  A hook returning `False` halts the
                                  transition; the state stays unchanged.
    after_enter(states, hook)   — runs after the order entered a state.
    after_cancel(hook)          — runs after the order was canceled.

Exceptions raised by hooks propagate to the caller and also leave the
state unchanged when raised by a before hook.
"""

import logging
from collections import defaultdict
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel

from .errors import InvalidTransitionError
from .models import Order, OrderState, ValidationErrorDetail

log = logging.getLogger(__name__)

CHECKOUT_FLOW = [
    OrderState.CART,
    OrderState.ADDRESS,
    OrderState.DELIVERY,
    OrderState.PAYMENT,
    OrderState.CONFIRM,
    OrderState.COMPLETE,
]

Hook = Callable[[Order], object]


class TransitionResult(BaseModel):
    ok: bool
    order_id: str
    from_state: OrderState
    to_state: OrderState
    errors: List[ValidationErrorDetail] = []


class OrderStateMachine:
    """
    Checkout state machine with hook registration.

    Args:
        payment_required (Callable[[Order], bool], optional): Predicate deciding
            whether the payment step is needed. When it returns False the order
            moves from delivery straight to confirm.
    """

    def __init__(self, payment_required: Optional[Callable[[Order], bool]] = None):
        self._payment_required = payment_required
        self._before = defaultdict(list)
        self._after = defaultdict(list)
        self._after_cancel: List[Hook] = []

    def before_enter(self, states: Iterable[OrderState], hook: Hook):
        for state in states:
            self._before[state].append(hook)

    def after_enter(self, states: Iterable[OrderState], hook: Hook):
        for state in states:
            self._after[state].append(hook)

    def after_cancel(self, hook: Hook):
        self._after_cancel.append(hook)

    def next_state(self, order: Order) -> OrderState:
        """
        Returns the state the order moves to on `advance()`.

        Raises:
            InvalidTransitionError: If the order is complete or canceled.
        """
        if order.state not in CHECKOUT_FLOW or order.state == OrderState.COMPLETE:
            raise InvalidTransitionError(f"Order {order.id} cannot advance from state {order.state.value}")

        target = CHECKOUT_FLOW[CHECKOUT_FLOW.index(order.state) + 1]
        if target == OrderState.PAYMENT and self._payment_required is not None \
                and not self._payment_required(order):
            target = OrderState.CONFIRM
        return target

    def advance(self, order: Order) -> TransitionResult:
        """
        Moves the order one step forward in the checkout flow.

        Returns:
            TransitionResult: ok=False with the order's validation errors if a
            before hook halted the transition.

        Raises:
            InvalidTransitionError: If the order cannot advance.
            ConfigurationError: Propagated from allocation hooks.
        """
        target = self.next_state(order)
        previous = order.state
        log_prefix = f"[Order: {order.id}]"

        order.errors = []
        for hook in self._before[target]:
            if hook(order) is False:
                log.warning(f"{log_prefix} Übergang {previous.value} -> {target.value} abgebrochen: "
                            f"{[e.message for e in order.errors]}")
                return TransitionResult(ok=False, order_id=order.id, from_state=previous,
                                        to_state=target, errors=list(order.errors))

        order.state = target
        log.info(f"{log_prefix} Zustand: {previous.value} -> {target.value}")

        for hook in self._after[target]:
            hook(order)

        return TransitionResult(ok=True, order_id=order.id, from_state=previous, to_state=target)

    def cancel(self, order: Order) -> TransitionResult:
        """
        Cancels the order from any state except canceled.

        Raises:
            InvalidTransitionError: If the order is already canceled.
        """
        if order.state == OrderState.CANCELED:
            raise InvalidTransitionError(f"Order {order.id} is already canceled")

        previous = order.state
        order.errors = []
        order.state = OrderState.CANCELED
        log.info(f"[Order: {order.id}] Storniert (vorher: {previous.value}).")

        for hook in self._after_cancel:
            hook(order)

        return TransitionResult(ok=True, order_id=order.id, from_state=previous, to_state=OrderState.CANCELED)
