"""
workflow.py — Checkout Orchestration for Store Credit

This module wires the store credit core into the order state machine.
It registers the allocation, reconciliation, capture and void steps at the
lifecycle hook points in the correct sequence.

Workflow Overview:
1. Before address, delivery, payment and complete: allocate store credit
2. Before confirm: allocate and reconcile the credit card payment
   Before complete: verify again that the valid payments equal the order total
3. After confirm: issue purchased gift cards via the Gift Card Service (REST)
4. After complete: capture store credit payments
5. After cancel: refund completed payments, void open store credit and recompute totals
"""

import logging
from typing import List, Optional

from .allocator import allocate
from .capture import cancel_store_credit, capture_store_credit, refund_completed_payments
from .clients import GiftCardClient
from .errors import FundingError, GiftCardIssuanceError
from .lifecycle import OrderStateMachine
from .models import GiftCard, Order, OrderState
from .queries import requires_payment
from .reconciler import check_funding, reconcile_secondary_payment
from .registry import PaymentMethodRegistry
from .updater import OrderUpdater

log = logging.getLogger(__name__)

ALLOCATION_STATES = [OrderState.ADDRESS, OrderState.DELIVERY, OrderState.PAYMENT, OrderState.COMPLETE]


def issue_gift_cards(order: Order, client: Optional[GiftCardClient]) -> List[GiftCard]:
    """
    Issues one gift card per purchased gift card unit of the order.

    A failed issuance is logged and skipped; it does not undo the confirmation.

    Args:
        order (Order): The order that just entered confirm.
        client (GiftCardClient, optional): Gift card service client. Without a
            client no gift cards are issued.

    Returns:
        List[GiftCard]: The gift cards issued successfully.
    """
    log_prefix = f"[Order: {order.id}]"
    gift_card_items = [item for item in order.line_items if item.gift_card]
    if not gift_card_items:
        return []
    if client is None:
        log.warning(f"{log_prefix} Kein Gift-Card-Client konfiguriert, {len(gift_card_items)} Position(en) übersprungen.")
        return []

    purchaser_id = order.customer.id if order.customer else None
    issued = []
    for item in gift_card_items:
        for unit in range(item.quantity):
            try:
                issued.append(client.issue_gift_card(order.id, item, unit, purchaser_id))
            except GiftCardIssuanceError as e:
                log.error(f"{log_prefix} Gift Card für {item.sku} (Einheit {unit + 1}) nicht ausgegeben: {e}")

    log.info(f"{log_prefix} {len(issued)} Gift Card(s) ausgegeben.")
    return issued


def build_state_machine(
        registry: PaymentMethodRegistry,
        gift_card_client: Optional[GiftCardClient] = None,
        updater: Optional[OrderUpdater] = None,
) -> OrderStateMachine:
    """
    Creates the checkout state machine with all store credit hooks registered.

    Args:
        registry (PaymentMethodRegistry): Payment methods of the current environment.
        gift_card_client (GiftCardClient, optional): Client for gift card issuance.
        updater (OrderUpdater, optional): Totals collaborator, a default one is created if omitted.

    Returns:
        OrderStateMachine: The configured state machine.

    Hook Order:
        Step 1 – before address/delivery/payment/complete: `allocate()`
        Step 2 – before confirm: `reconcile_secondary_payment()`, halts on funding errors
        Step 2b – before complete: `check_funding()`, halts on funding errors
        Step 3 – after confirm: `issue_gift_cards()`
        Step 4 – after complete: `capture_store_credit()`, then totals update
        Step 5 – after cancel: refunds, `cancel_store_credit()`
    """
    updater = updater or OrderUpdater()
    machine = OrderStateMachine(payment_required=requires_payment)

    def charge_store_credit(order: Order):
        allocate(order, registry)

    def add_store_credit_payments(order: Order) -> bool:
        return reconcile_secondary_payment(order, registry).ok

    def verify_funding(order: Order) -> bool:
        try:
            check_funding(order)
        except FundingError as e:
            order.add_error(e.field, e.message)
            return False
        return True

    def create_gift_cards(order: Order):
        issue_gift_cards(order, gift_card_client)

    def capture_and_update(order: Order):
        report = capture_store_credit(order)
        if not report.ok:
            log.critical(f"[Order: {order.id}] {len(report.failures)} Store-Credit-Zahlung(en) nicht erfasst. "
                         f"Manuelle Prüfung nötig!")
        updater.update(order)

    def refund_payments(order: Order):
        refund_completed_payments(order)

    def release_store_credit(order: Order):
        cancel_store_credit(order, updater)

    machine.before_enter(ALLOCATION_STATES, charge_store_credit)
    machine.before_enter([OrderState.CONFIRM], add_store_credit_payments)
    machine.before_enter([OrderState.COMPLETE], verify_funding)
    machine.after_enter([OrderState.CONFIRM], create_gift_cards)
    machine.after_enter([OrderState.COMPLETE], capture_and_update)
    machine.after_cancel(refund_payments)
    machine.after_cancel(release_store_credit)
    return machine
