import threading
from decimal import Decimal

import pytest

from store_credit_service.errors import InsufficientStoreCreditError, InvalidTransitionError, StoreCreditError
from store_credit_service.models import OrderState, Payment, PaymentState, StoreCredit


def test_amount_remaining_subtracts_used_and_authorized():
    credit = StoreCredit(amount=Decimal("100"), amount_used=Decimal("30"), amount_authorized=Decimal("20"))
    assert credit.amount_remaining == Decimal("50")


def test_authorize_refuses_to_overdraw():
    credit = StoreCredit(amount=Decimal("10"))
    with pytest.raises(InsufficientStoreCreditError):
        credit.authorize(Decimal("10.01"))
    assert credit.amount_authorized == Decimal("0")


def test_concurrent_authorizations_never_overdraw():
    credit = StoreCredit(amount=Decimal("50"))
    successes = []
    barrier = threading.Barrier(10)

    def worker():
        barrier.wait()
        try:
            credit.authorize(Decimal("10"))
            successes.append(True)
        except InsufficientStoreCreditError:
            pass

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 5
    assert credit.amount_remaining == Decimal("0")


def test_capture_requires_authorization():
    credit = StoreCredit(amount=Decimal("10"))
    with pytest.raises(StoreCreditError):
        credit.capture(Decimal("5"))


def test_authorization_codes_are_unique():
    credit = StoreCredit(id="sc-1", amount=Decimal("10"))
    first = credit.generate_authorization_code()
    assert first.startswith("sc-1-SC-")
    assert first != credit.generate_authorization_code()


def test_store_credit_payment_lifecycle(store_credit_method):
    credit = StoreCredit(amount=Decimal("50"))
    payment = Payment(amount=Decimal("20"), source=credit, payment_method=store_credit_method)

    assert payment.source is credit
    payment.capture()

    assert payment.state == PaymentState.COMPLETED
    assert credit.amount_used == Decimal("20")
    assert credit.amount_remaining == Decimal("30")

    payment.refund()
    assert payment.state == PaymentState.VOID
    assert credit.amount_remaining == Decimal("50")


def test_void_of_pending_payment_releases_hold(store_credit_method):
    credit = StoreCredit(amount=Decimal("50"))
    payment = Payment(amount=Decimal("40"), source=credit, payment_method=store_credit_method)
    payment.authorize()
    assert credit.amount_remaining == Decimal("10")

    payment.void()
    assert payment.state == PaymentState.VOID
    assert credit.amount_remaining == Decimal("50")


def test_invalidate_only_from_checkout(store_credit_method):
    payment = Payment(amount=Decimal("5"), source=StoreCredit(amount=Decimal("5")), payment_method=store_credit_method)
    payment.capture()
    with pytest.raises(InvalidTransitionError):
        payment.invalidate()


def test_outstanding_balance(make_order):
    order = make_order(80)
    order.payment_total = Decimal("30")
    assert order.outstanding_balance == Decimal("50")

    order.state = OrderState.CANCELED
    assert order.outstanding_balance == Decimal("-30")


def test_void_payment_is_not_valid(store_credit_method):
    payment = Payment(amount=Decimal("5"), source=StoreCredit(amount=Decimal("5")), payment_method=store_credit_method)
    assert payment.is_valid
    payment.void()
    assert not payment.is_valid
