"""
capture.py — Capture and Void of Store Credit Payments

Finalizes store credit payments when an order completes and releases them
when an order is canceled. Every payment is processed independently: a
failure on one credit is logged and reported, the remaining payments are
still processed.
"""

import logging
from typing import List

from pydantic import BaseModel

from .errors import InvalidTransitionError, StoreCreditError
from .models import Order, PaymentState
from .updater import OrderUpdater

log = logging.getLogger(__name__)


class PaymentFailure(BaseModel):
    payment_id: str
    source_id: str
    reason: str


class CaptureReport(BaseModel):
    """
    Result of a capture or void run.

    Attributes:
        processed (List[str]): Ids of payments handled successfully.
        failures (List[PaymentFailure]): Payments that could not be handled.
    """
    processed: List[str] = []
    failures: List[PaymentFailure] = []

    @property
    def ok(self) -> bool:
        return not self.failures


def capture_store_credit(order: Order) -> CaptureReport:
    """
    Captures every valid store credit payment of a completed order.

    Capturing debits the credit permanently and marks the payment completed.
    Payments that are already completed are left alone.

    Args:
        order (Order): The order that just entered the complete state.

    Returns:
        CaptureReport: Captured payment ids and per-payment failures.
    """
    log_prefix = f"[Order: {order.id}]"
    report = CaptureReport()

    for payment in order.store_credit_payments():
        if not payment.is_valid or payment.state == PaymentState.COMPLETED:
            continue
        try:
            payment.capture()
        except (StoreCreditError, InvalidTransitionError) as e:
            log.error(f"{log_prefix} Capture von Zahlung {payment.id} (Store Credit {payment.source.id}) fehlgeschlagen: {e}")
            report.failures.append(PaymentFailure(payment_id=payment.id, source_id=payment.source.id, reason=str(e)))
            continue
        report.processed.append(payment.id)
        log.info(f"{log_prefix} Store Credit {payment.source.id} mit {payment.amount} {order.currency} erfasst.")

    return report


def void_store_credit(order: Order) -> CaptureReport:
    """
    Voids every store credit payment still in checkout or pending state.

    Voiding a pending payment releases its hold, so the credit's available
    balance is restored.
    """
    log_prefix = f"[Order: {order.id}]"
    report = CaptureReport()

    for payment in order.store_credit_payments():
        if payment.state not in (PaymentState.CHECKOUT, PaymentState.PENDING):
            continue
        try:
            payment.void()
        except (StoreCreditError, InvalidTransitionError) as e:
            log.error(f"{log_prefix} Storno von Zahlung {payment.id} (Store Credit {payment.source.id}) fehlgeschlagen: {e}")
            report.failures.append(PaymentFailure(payment_id=payment.id, source_id=payment.source.id, reason=str(e)))
            continue
        report.processed.append(payment.id)
        log.info(f"{log_prefix} Store-Credit-Zahlung {payment.id} storniert ({payment.amount} freigegeben).")

    return report


def refund_completed_payments(order: Order) -> CaptureReport:
    """
    Refunds all completed payments of a canceled order.

    Store credit payments are credited back to their credit. Failures are
    isolated per payment like in the capture path.
    """
    log_prefix = f"[Order: {order.id}]"
    report = CaptureReport()

    for payment in order.payments:
        if payment.state != PaymentState.COMPLETED:
            continue
        try:
            payment.refund()
        except (StoreCreditError, InvalidTransitionError) as e:
            log.error(f"{log_prefix} Erstattung von Zahlung {payment.id} fehlgeschlagen: {e}")
            report.failures.append(PaymentFailure(payment_id=payment.id, source_id=payment.source.id, reason=str(e)))
            continue
        report.processed.append(payment.id)
        log.info(f"{log_prefix} Zahlung {payment.id} erstattet ({payment.amount} {order.currency}).")

    return report


def cancel_store_credit(order: Order, updater: OrderUpdater) -> CaptureReport:
    """
    Releases store credit of a canceled order and recomputes its payment state.

    The recomputation is required because the generic cancellation assumes
    a payment outcome that does not hold once credit payments were voided.

    Args:
        order (Order): The order that was just canceled.
        updater (OrderUpdater): Collaborator that persists totals and payment state.

    Returns:
        CaptureReport: Voided payment ids and per-payment failures.
    """
    report = void_store_credit(order)
    updater.persist_totals(order)
    updater.update_payment_state(order)
    return report
