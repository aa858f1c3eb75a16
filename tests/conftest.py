from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from store_credit_service.models import (
    CreditCard,
    Customer,
    Order,
    OrderState,
    Payment,
    PaymentMethod,
    PaymentMethodType,
    StoreCredit,
)
from store_credit_service.registry import PaymentMethodRegistry

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def store_credit_method():
    return PaymentMethod(id="pm-sc", name="Store Credit", type=PaymentMethodType.STORE_CREDIT, environment="test")


@pytest.fixture
def card_method():
    return PaymentMethod(id="pm-cc", name="Credit Card", type=PaymentMethodType.CREDIT_CARD, environment="test")


@pytest.fixture
def registry(store_credit_method, card_method):
    return PaymentMethodRegistry("test", [store_credit_method, card_method])


@pytest.fixture
def make_customer():
    def _make(*amounts, priorities=None):
        priorities = priorities or [1] * len(amounts)
        credits = [
            StoreCredit(
                id=f"sc-{i + 1}",
                amount=Decimal(str(amount)),
                priority=priority,
                created_at=BASE_TIME + timedelta(minutes=i),
            )
            for i, (amount, priority) in enumerate(zip(amounts, priorities))
        ]
        return Customer(id="cus-1", email="kunde@example.com", store_credits=credits)
    return _make


@pytest.fixture
def make_order():
    def _make(total, customer=None, state=OrderState.CART):
        return Order(id="R100", total=Decimal(str(total)), customer=customer, state=state)
    return _make


@pytest.fixture
def card_payment(card_method):
    def _make(amount):
        return Payment(amount=Decimal(str(amount)), source=CreditCard(), payment_method=card_method)
    return _make
