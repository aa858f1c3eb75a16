from decimal import Decimal

import pytest

from store_credit_service.errors import ConfigurationError, GiftCardIssuanceError, InvalidTransitionError
from store_credit_service.models import GiftCard, LineItem, OrderState, PaymentMethod, PaymentMethodType, PaymentState
from store_credit_service.workflow import build_state_machine, issue_gift_cards


class RecordingGiftCardClient:

    def __init__(self, fail_skus=()):
        self.calls = []
        self.fail_skus = fail_skus

    def issue_gift_card(self, order_id, line_item, unit, purchaser_id=None):
        self.calls.append((order_id, line_item.sku, unit, purchaser_id))
        if line_item.sku in self.fail_skus:
            raise GiftCardIssuanceError("rejected")
        return GiftCard(code=f"GC{len(self.calls)}", amount=line_item.price, currency=line_item.currency,
                        line_item_sku=line_item.sku, purchaser_id=purchaser_id)


def _advance_to(machine, order, state):
    while order.state != state:
        result = machine.advance(order)
        if not result.ok:
            return result
    return result


def test_partial_credit_checkout(registry, make_customer, make_order, card_payment):
    customer = make_customer(30)
    order = make_order(80, customer)
    card = card_payment(80)
    order.payments.append(card)
    machine = build_state_machine(registry)

    machine.advance(order)
    assert order.state == OrderState.ADDRESS
    assert [p.amount for p in order.store_credit_payments()] == [Decimal("30")]

    assert machine.next_state(order) == OrderState.DELIVERY
    machine.advance(order)
    assert machine.next_state(order) == OrderState.PAYMENT

    assert _advance_to(machine, order, OrderState.CONFIRM).ok
    assert card.amount == Decimal("50")

    result = machine.advance(order)
    assert result.ok
    assert order.state == OrderState.COMPLETE
    credit_payment = order.store_credit_payments()[0]
    assert credit_payment.state == PaymentState.COMPLETED
    assert customer.store_credits[0].amount_remaining == Decimal("0")
    assert order.payment_total == Decimal("30")
    assert order.payment_state == "balance_due"


def test_fully_covered_order_skips_payment_step(registry, make_customer, make_order):
    order = make_order(80, make_customer(100))
    machine = build_state_machine(registry)
    _advance_to(machine, order, OrderState.DELIVERY)

    result = machine.advance(order)

    assert result.to_state == OrderState.CONFIRM
    assert sum(p.amount for p in order.valid_payments()) == order.total


def test_unfunded_order_stays_in_payment(registry, make_customer, make_order):
    order = make_order(80, make_customer(30))
    machine = build_state_machine(registry)
    _advance_to(machine, order, OrderState.PAYMENT)

    result = machine.advance(order)

    assert not result.ok
    assert order.state == OrderState.PAYMENT
    assert [e.message for e in result.errors] == ["unable to fund order"]


def test_configuration_error_propagates_and_keeps_state(registry, make_customer, make_order):
    registry.register(PaymentMethod(name="Duplicate", type=PaymentMethodType.STORE_CREDIT, environment="test"))
    order = make_order(80, make_customer(30))
    machine = build_state_machine(registry)

    with pytest.raises(ConfigurationError):
        machine.advance(order)
    assert order.state == OrderState.CART
    assert order.payments == []


def test_cancel_after_completion_gives_credit_back(registry, make_customer, make_order):
    customer = make_customer(100)
    order = make_order(80, customer)
    machine = build_state_machine(registry)
    _advance_to(machine, order, OrderState.COMPLETE)
    assert customer.total_available_store_credit == Decimal("20")

    machine.cancel(order)

    assert order.state == OrderState.CANCELED
    assert customer.total_available_store_credit == Decimal("100")
    assert all(p.state == PaymentState.VOID for p in order.payments)
    assert order.payment_state == "void"


def test_cannot_advance_or_cancel_twice(registry, make_order):
    order = make_order(0)
    machine = build_state_machine(registry)
    _advance_to(machine, order, OrderState.COMPLETE)

    with pytest.raises(InvalidTransitionError):
        machine.advance(order)

    machine.cancel(order)
    with pytest.raises(InvalidTransitionError):
        machine.cancel(order)


def test_gift_cards_are_issued_after_confirm(registry, make_customer, make_order):
    client = RecordingGiftCardClient()
    order = make_order(100, make_customer(100))
    order.line_items = [
        LineItem(sku="GC-50", quantity=2, price=Decimal("50"), gift_card=True),
        LineItem(sku="BOOK", quantity=1, price=Decimal("0")),
    ]
    machine = build_state_machine(registry, gift_card_client=client)

    _advance_to(machine, order, OrderState.DELIVERY)
    assert client.calls == []
    machine.advance(order)

    assert client.calls == [("R100", "GC-50", 0, "cus-1"), ("R100", "GC-50", 1, "cus-1")]


def test_failed_gift_card_does_not_stop_the_others(make_order):
    client = RecordingGiftCardClient(fail_skus=("GC-BAD",))
    order = make_order(60)
    order.line_items = [
        LineItem(sku="GC-BAD", quantity=1, price=Decimal("10"), gift_card=True),
        LineItem(sku="GC-50", quantity=1, price=Decimal("50"), gift_card=True),
    ]

    issued = issue_gift_cards(order, client)

    assert [g.line_item_sku for g in issued] == ["GC-50"]
    assert len(client.calls) == 2


def test_payment_added_after_confirm_blocks_completion(registry, make_customer, make_order, card_payment):
    customer = make_customer(30)
    order = make_order(80, customer)
    order.payments.append(card_payment(80))
    machine = build_state_machine(registry)
    assert _advance_to(machine, order, OrderState.CONFIRM).ok

    order.payments.append(card_payment(25))
    result = machine.advance(order)

    assert not result.ok
    assert order.state == OrderState.CONFIRM
    assert [e.message for e in result.errors] == ["unable to fund order"]
    assert customer.store_credits[0].amount_remaining == Decimal("30")
