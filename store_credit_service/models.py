"""
models.py — Data Models for Store Credit Allocation

This module defines the entities the allocation core works on and the payloads
accepted by the REST API. It uses Pydantic models to ensure type safety and
automatic validation of incoming data.

Models:
    - StoreCredit: A stored-value balance owned by a customer (credit instrument).
    - CreditCard / Check: Non-credit payment sources.
    - PaymentMethod: A configured payment method of an environment.
    - Payment: A claim against an order, drawn from one source.
    - LineItem: A single purchased item of an order.
    - Customer: Owner of store credits.
    - Order: Aggregate root holding payments, line items and validation errors.
    - New*Request: API payloads.

All amounts are `Decimal` values in major currency units.
"""

import threading
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr

from .errors import InsufficientStoreCreditError, InvalidTransitionError, StoreCreditError

ZERO = Decimal("0")


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderState(str, Enum):
    CART = "cart"
    ADDRESS = "address"
    DELIVERY = "delivery"
    PAYMENT = "payment"
    CONFIRM = "confirm"
    COMPLETE = "complete"
    CANCELED = "canceled"


class PaymentState(str, Enum):
    CHECKOUT = "checkout"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    VOID = "void"
    INVALID = "invalid"


class PaymentMethodType(str, Enum):
    STORE_CREDIT = "store_credit"
    CREDIT_CARD = "credit_card"
    CHECK = "check"


class StoreCredit(BaseModel):
    """
    Represents one unit of stored value owned by a customer.

    The spendable balance is `amount - amount_used - amount_authorized`.
    Balance mutations are serialized through a per-instrument lock and never
    overdraw the credit.

    Attributes:
        id (str): Unique identifier of the credit.
        amount (Decimal): Originally issued value.
        amount_used (Decimal): Captured (permanently debited) value.
        amount_authorized (Decimal): Value held by pending payments.
        priority (int): Spending rank, lower values are spent first.
        currency (str): ISO 4217 currency code.
        created_at (datetime): Issue time, tie-breaker for equal priorities.
    """
    source_type: Literal["store_credit"] = "store_credit"
    id: str = Field(default_factory=lambda: new_id("sc"))
    amount: Decimal = Field(..., ge=0)
    amount_used: Decimal = Field(ZERO, ge=0)
    amount_authorized: Decimal = Field(ZERO, ge=0)
    priority: int = 1
    currency: str = "EUR"
    created_at: datetime = Field(default_factory=_utcnow)

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @property
    def amount_remaining(self) -> Decimal:
        return self.amount - self.amount_used - self.amount_authorized

    def sort_key(self):
        return (self.priority, self.created_at, self.id)

    def generate_authorization_code(self) -> str:
        """Returns a fresh, unique authorization token for a payment drawn from this credit."""
        timestamp = time.strftime("%Y%m%d%H%M%S", time.gmtime())
        return f"{self.id}-SC-{timestamp}-{uuid.uuid4().hex[:6]}"

    def authorize(self, amount: Decimal):
        """
        Places a hold of `amount` on the credit.

        Raises:
            InsufficientStoreCreditError: If the remaining balance is smaller than `amount`.
        """
        with self._lock:
            if amount > self.amount_remaining:
                raise InsufficientStoreCreditError(
                    f"Store credit {self.id}: cannot authorize {amount}, only {self.amount_remaining} remaining"
                )
            self.amount_authorized += amount

    def capture(self, amount: Decimal):
        """
        Converts a held `amount` into a permanent debit.

        Raises:
            StoreCreditError: If less than `amount` is currently authorized.
        """
        with self._lock:
            if amount > self.amount_authorized:
                raise StoreCreditError(
                    f"Store credit {self.id}: cannot capture {amount}, only {self.amount_authorized} authorized"
                )
            self.amount_authorized -= amount
            self.amount_used += amount

    def void(self, amount: Decimal):
        """Releases a hold of `amount` without debiting the credit."""
        with self._lock:
            if amount > self.amount_authorized:
                raise StoreCreditError(
                    f"Store credit {self.id}: cannot void {amount}, only {self.amount_authorized} authorized"
                )
            self.amount_authorized -= amount

    def credit(self, amount: Decimal):
        """Gives a captured `amount` back to the credit (refund)."""
        with self._lock:
            if amount > self.amount_used:
                raise StoreCreditError(
                    f"Store credit {self.id}: cannot credit {amount}, only {self.amount_used} used"
                )
            self.amount_used -= amount


class CreditCard(BaseModel):
    source_type: Literal["credit_card"] = "credit_card"
    id: str = Field(default_factory=lambda: new_id("cc"))
    brand: str = "visa"
    last_digits: str = Field("1111", min_length=4, max_length=4)
    name: Optional[str] = None


class Check(BaseModel):
    source_type: Literal["check"] = "check"
    id: str = Field(default_factory=lambda: new_id("chk"))
    reference: Optional[str] = None


PaymentSource = Union[StoreCredit, CreditCard, Check]


class PaymentMethod(BaseModel):
    """
    A payment method configured for one environment.

    Attributes:
        id (str): Unique identifier.
        name (str): Display name.
        type (PaymentMethodType): Kind of source the method accepts.
        environment (str): Deployment environment the method belongs to.
        active (bool): Inactive methods are ignored by lookups.
    """
    id: str = Field(default_factory=lambda: new_id("pm"))
    name: str
    type: PaymentMethodType
    environment: str = "development"
    active: bool = True


class Payment(BaseModel):
    """
    A claim against an order for some amount, drawn from exactly one source.

    State transitions:
        checkout → invalid      (invalidate)
        checkout → pending      (authorize)
        checkout/pending → completed  (capture)
        checkout/pending → void       (void)
        completed → void        (refund)
    """
    id: str = Field(default_factory=lambda: new_id("pay"))
    amount: Decimal = Field(..., ge=0)
    state: PaymentState = PaymentState.CHECKOUT
    source: PaymentSource
    payment_method: PaymentMethod
    response_code: Optional[str] = None

    @property
    def is_store_credit(self) -> bool:
        return isinstance(self.source, StoreCredit)

    @property
    def is_valid(self) -> bool:
        # void (auch erstattete) Zahlungen tragen nicht mehr zur Summe bei
        return self.state not in (PaymentState.FAILED, PaymentState.INVALID, PaymentState.VOID)

    def _transition(self, allowed, target: PaymentState):
        if self.state not in allowed:
            raise InvalidTransitionError(
                f"Payment {self.id}: transition {self.state.value} -> {target.value} not allowed"
            )
        self.state = target

    def invalidate(self):
        self._transition((PaymentState.CHECKOUT,), PaymentState.INVALID)

    def authorize(self):
        if self.state != PaymentState.CHECKOUT:
            raise InvalidTransitionError(f"Payment {self.id}: cannot authorize in state {self.state.value}")
        if self.is_store_credit:
            self.source.authorize(self.amount)
        self.state = PaymentState.PENDING

    def capture(self):
        if self.state == PaymentState.CHECKOUT:
            self.authorize()
        if self.state != PaymentState.PENDING:
            raise InvalidTransitionError(f"Payment {self.id}: cannot capture in state {self.state.value}")
        if self.is_store_credit:
            self.source.capture(self.amount)
        self.state = PaymentState.COMPLETED

    def void(self):
        if self.state not in (PaymentState.CHECKOUT, PaymentState.PENDING):
            raise InvalidTransitionError(f"Payment {self.id}: cannot void in state {self.state.value}")
        # Im Zustand checkout existiert noch kein Hold auf dem Guthaben
        if self.state == PaymentState.PENDING and self.is_store_credit:
            self.source.void(self.amount)
        self.state = PaymentState.VOID

    def refund(self):
        if self.state != PaymentState.COMPLETED:
            raise InvalidTransitionError(f"Payment {self.id}: cannot refund in state {self.state.value}")
        if self.is_store_credit:
            self.source.credit(self.amount)
        self.state = PaymentState.VOID


class LineItem(BaseModel):
    """
    Represents a single product item in an order.

    Attributes:
        sku (str): The unique product identifier (Stock Keeping Unit).
        quantity (int): The quantity of the product. Must be greater than zero.
        price (Decimal): Unit price.
        currency (str): ISO 4217 currency code.
        gift_card (bool): True if each unit is a purchased gift card.
    """
    sku: str
    quantity: int = Field(..., gt=0) # gt=0 bedeutet "greater than 0"
    price: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    gift_card: bool = False


class GiftCard(BaseModel):
    code: str
    amount: Decimal
    currency: str
    line_item_sku: str
    purchaser_id: Optional[str] = None


class ValidationErrorDetail(BaseModel):
    field: str
    message: str


class Customer(BaseModel):
    id: str = Field(default_factory=lambda: new_id("cus"))
    email: Optional[str] = None
    store_credits: List[StoreCredit] = Field(default_factory=list)

    @property
    def total_available_store_credit(self) -> Decimal:
        return sum((credit.amount_remaining for credit in self.store_credits), ZERO)

    def store_credits_by_priority(self) -> List[StoreCredit]:
        return sorted(self.store_credits, key=lambda credit: credit.sort_key())


class Order(BaseModel):
    """
    Aggregate root of the checkout.

    Attributes:
        id (str): Unique order identifier.
        total (Decimal): Grand total, computed outside this service.
        payment_total (Decimal): Sum of completed payments, maintained by the updater.
        currency (str): ISO 4217 currency code.
        state (OrderState): Current checkout state.
        payment_state (str, optional): balance_due, paid, credit_owed, failed or void.
        customer (Customer, optional): Owner of the order, None for guest checkouts.
        line_items (List[LineItem]): Purchased items.
        payments (List[Payment]): All payments ever attached to the order.
        errors (List[ValidationErrorDetail]): Validation errors of the last transition.
    """
    id: str = Field(default_factory=lambda: new_id("R"))
    total: Decimal = Field(..., ge=0)
    payment_total: Decimal = ZERO
    currency: str = "EUR"
    state: OrderState = OrderState.CART
    payment_state: Optional[str] = None
    customer: Optional[Customer] = None
    line_items: List[LineItem] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    errors: List[ValidationErrorDetail] = Field(default_factory=list)

    @property
    def outstanding_balance(self) -> Decimal:
        if self.state == OrderState.CANCELED:
            return -self.payment_total
        return self.total - self.payment_total

    def valid_payments(self) -> List[Payment]:
        return [p for p in self.payments if p.is_valid]

    def store_credit_payments(self) -> List[Payment]:
        return [p for p in self.payments if p.is_store_credit]

    def add_error(self, field: str, message: str):
        self.errors.append(ValidationErrorDetail(field=field, message=message))


# --- API payloads ---

class NewStoreCreditRequest(BaseModel):
    """
    A store credit to register for a customer.

    Attributes:
        amount (Decimal): Issued value, must be positive.
        priority (int): Spending rank, lower is spent first.
        currency (str): ISO 4217 currency code (e.g. 'EUR').
    """
    amount: Decimal = Field(..., gt=0)
    priority: int = 1
    currency: str = "EUR"


class NewCustomerRequest(BaseModel):
    customerId: str
    email: Optional[str] = None
    storeCredits: List[NewStoreCreditRequest] = Field(default_factory=list)


class NewPaymentMethodRequest(BaseModel):
    name: str
    type: PaymentMethodType
    environment: Optional[str] = None
    active: bool = True


class NewOrderRequest(BaseModel):
    """
    Represents a new order created by the shop frontend.

    Attributes:
        orderId (str): Unique identifier for the order.
        customerId (str, optional): Owner of the order; None for guest checkout.
        totalAmount (Decimal): Grand total in major currency units.
        currency (str): ISO 4217 currency code (e.g., 'EUR', 'USD').
        items (List[LineItem]): List of items included in the order.
    """
    orderId: str
    customerId: Optional[str] = None
    totalAmount: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    items: List[LineItem] = Field(default_factory=list)


class NewCardPaymentRequest(BaseModel):
    paymentMethodId: str
    amount: Decimal = Field(..., ge=0)
    brand: str = "visa"
    lastDigits: str = Field("1111", min_length=4, max_length=4)
    name: Optional[str] = None
