from decimal import Decimal

import pytest

from store_credit_service.allocator import allocate, plan_allocation
from store_credit_service.errors import ConfigurationError
from store_credit_service.models import PaymentMethod, PaymentMethodType, PaymentState
from store_credit_service.registry import PaymentMethodRegistry


def _credit_payments(order):
    return [(p.source.id, p.amount) for p in order.store_credit_payments() if p.is_valid]


def test_draws_credits_in_priority_order(registry, make_customer, make_order):
    customer = make_customer(30, 50, 20, priorities=[1, 2, 3])
    order = make_order(70, customer)

    remaining = allocate(order, registry)

    assert remaining == Decimal("0")
    assert _credit_payments(order) == [("sc-1", Decimal("30")), ("sc-2", Decimal("40"))]
    assert all(p.state == PaymentState.CHECKOUT for p in order.payments)
    assert all(p.response_code.startswith(p.source.id) for p in order.payments)


def test_priority_beats_list_position(registry, make_customer, make_order):
    customer = make_customer(30, 50, priorities=[2, 1])
    order = make_order(60, customer)

    allocate(order, registry)

    assert _credit_payments(order) == [("sc-2", Decimal("50")), ("sc-1", Decimal("10"))]


def test_equal_priority_spends_oldest_first(registry, make_customer, make_order):
    customer = make_customer(10, 10)
    order = make_order(10, customer)

    allocate(order, registry)

    assert _credit_payments(order) == [("sc-1", Decimal("10"))]


def test_zero_balance_credit_is_skipped(registry, make_customer, make_order):
    customer = make_customer(20, 50)
    customer.store_credits[0].amount_used = Decimal("20")
    order = make_order(30, customer)

    allocate(order, registry)

    assert _credit_payments(order) == [("sc-2", Decimal("30"))]


def test_returns_uncovered_remainder(registry, make_customer, make_order):
    order = make_order(80, make_customer(30))
    assert allocate(order, registry) == Decimal("50")


def test_uses_outstanding_balance_not_total(registry, make_customer, make_order):
    order = make_order(80, make_customer(100))
    order.payment_total = Decimal("50")

    allocate(order, registry)

    assert _credit_payments(order) == [("sc-1", Decimal("30"))]


def test_order_without_customer_is_untouched(registry, make_order):
    order = make_order(80)
    assert allocate(order, registry) == Decimal("80")
    assert order.payments == []


def test_customer_without_credits_needs_no_payment_method(make_customer, make_order):
    order = make_order(80, make_customer())
    assert allocate(order, PaymentMethodRegistry("test")) == Decimal("80")


def test_second_run_keeps_the_same_payments(registry, make_customer, make_order):
    order = make_order(70, make_customer(30, 50, 20, priorities=[1, 2, 3]))

    allocate(order, registry)
    first_ids = [p.id for p in order.payments]
    allocate(order, registry)

    assert [p.id for p in order.payments] == first_ids
    assert _credit_payments(order) == [("sc-1", Decimal("30")), ("sc-2", Decimal("40"))]


def test_stale_payments_are_invalidated_then_discarded(registry, make_customer, make_order):
    customer = make_customer(30, 50)
    order = make_order(70, customer)
    allocate(order, registry)
    stale = order.payments[1]

    # sc-1 wurde anderweitig teilweise verbraucht
    customer.store_credits[0].amount_used = Decimal("10")
    allocate(order, registry)

    assert stale.state == PaymentState.INVALID
    assert _credit_payments(order) == [("sc-1", Decimal("20")), ("sc-2", Decimal("50"))]

    allocate(order, registry)
    assert all(p.state != PaymentState.INVALID for p in order.payments)
    assert _credit_payments(order) == [("sc-1", Decimal("20")), ("sc-2", Decimal("50"))]


def test_two_store_credit_methods_halt_without_payments(registry, make_customer, make_order):
    registry.register(PaymentMethod(name="Store Credit 2", type=PaymentMethodType.STORE_CREDIT, environment="test"))
    order = make_order(70, make_customer(30))

    with pytest.raises(ConfigurationError):
        allocate(order, registry)
    assert order.payments == []


def test_configuration_error_keeps_previous_allocation(registry, make_customer, make_order):
    order = make_order(70, make_customer(30))
    allocate(order, registry)
    registry.register(PaymentMethod(name="Store Credit 2", type=PaymentMethodType.STORE_CREDIT, environment="test"))

    with pytest.raises(ConfigurationError):
        allocate(order, registry)

    assert [p.state for p in order.payments] == [PaymentState.CHECKOUT]


def test_missing_store_credit_method_is_a_configuration_error(card_method, make_customer, make_order):
    order = make_order(70, make_customer(30))
    with pytest.raises(ConfigurationError):
        allocate(order, PaymentMethodRegistry("test", [card_method]))


def test_methods_of_other_environments_are_ignored(store_credit_method, make_customer, make_order):
    registry = PaymentMethodRegistry("production", [store_credit_method])
    with pytest.raises(ConfigurationError):
        plan_allocation(make_order(70, make_customer(30)), registry)


def test_plan_does_not_modify_order(registry, make_customer, make_order):
    order = make_order(70, make_customer(30, 50))
    plan = plan_allocation(order, registry)

    assert plan.remaining == Decimal("0")
    assert [e.amount for e in plan.entries] == [Decimal("30"), Decimal("40")]
    assert order.payments == []
