from decimal import Decimal

from store_credit_service.models import OrderState, PaymentState
from store_credit_service.updater import OrderUpdater


def test_only_failed_or_invalid_payments_mean_failed(make_order, card_payment):
    order = make_order(80)
    order.payments.append(card_payment(80))
    order.payments[0].invalidate()

    assert OrderUpdater().update_payment_state(order) == "failed"


def test_voided_payments_of_canceled_order_mean_void(make_order, card_payment):
    order = make_order(80, state=OrderState.CANCELED)
    order.payments.append(card_payment(80))
    order.payments[0].void()

    updater = OrderUpdater()
    updater.update(order)

    assert order.payments[0].state == PaymentState.VOID
    assert order.payment_total == Decimal("0")
    assert order.payment_state == "void"
