"""
main.py — FastAPI Entry Point for the Store Credit Service

This module provides the REST API interface of the store credit service.
It exposes the checkout of an order step by step, so that store credit is
allocated, reconciled with the credit card payment, captured on completion
and released on cancellation.

Responsibilities:
    • Register customers with their store credits and the payment methods of the environment
    • Accept orders and credit card payments
    • Advance and cancel orders through the checkout state machine
    • Report how much store credit applies to an order
    • Provide system health information
"""

from typing import Optional

from fastapi import FastAPI, HTTPException

from . import config
from .clients import GiftCardClient
from .errors import ConfigurationError, InvalidTransitionError, NotFoundError
from .logging_config import setup_logging, get_logger
from .models import (
    CreditCard,
    Customer,
    NewCardPaymentRequest,
    NewCustomerRequest,
    NewOrderRequest,
    NewPaymentMethodRequest,
    Order,
    OrderState,
    Payment,
    PaymentMethod,
    PaymentMethodType,
    StoreCredit,
)
from .queries import store_credit_summary
from .registry import PaymentMethodRegistry
from .repository import OrderRepository
from .updater import OrderUpdater
from .workflow import build_state_machine

# Initialization
setup_logging()
log = get_logger(__name__)


def _error(status_code: int, error_code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"errorCode": error_code, "message": message})


def order_snapshot(order: Order) -> dict:
    """Serializes the parts of an order the API exposes."""
    return {
        "orderId": order.id,
        "state": order.state.value,
        "total": str(order.total),
        "currency": order.currency,
        "paymentTotal": str(order.payment_total),
        "paymentState": order.payment_state,
        "outstandingBalance": str(order.outstanding_balance),
        "customerId": order.customer.id if order.customer else None,
        "payments": [
            {
                "paymentId": p.id,
                "amount": str(p.amount),
                "state": p.state.value,
                "sourceType": p.source.source_type,
                "sourceId": p.source.id,
                "responseCode": p.response_code,
            }
            for p in order.payments
        ],
        "errors": [e.model_dump() for e in order.errors],
    }


def customer_snapshot(customer: Customer) -> dict:
    return {
        "customerId": customer.id,
        "email": customer.email,
        "totalAvailableStoreCredit": str(customer.total_available_store_credit),
        "storeCredits": [
            {
                "storeCreditId": c.id,
                "amount": str(c.amount),
                "amountRemaining": str(c.amount_remaining),
                "priority": c.priority,
                "currency": c.currency,
            }
            for c in customer.store_credits_by_priority()
        ],
    }


def create_app(
        registry: Optional[PaymentMethodRegistry] = None,
        repository: Optional[OrderRepository] = None,
        gift_card_client: Optional[GiftCardClient] = None,
) -> FastAPI:
    """
    Builds the FastAPI application with its collaborators.

    Args:
        registry (PaymentMethodRegistry, optional): Payment methods, defaults to an
            empty registry for `APP_ENV`.
        repository (OrderRepository, optional): Order and customer storage.
        gift_card_client (GiftCardClient, optional): Defaults to a client for
            `GIFT_CARD_SERVICE_URL`.

    Returns:
        FastAPI: The configured application.
    """
    registry = registry or PaymentMethodRegistry(config.APP_ENV)
    repository = repository or OrderRepository()
    gift_card_client = gift_card_client or GiftCardClient()
    state_machine = build_state_machine(registry, gift_card_client, OrderUpdater())

    app = FastAPI(title="Store Credit Service")
    app.state.registry = registry
    app.state.repository = repository
    app.state.state_machine = state_machine

    @app.post("/v1/payment-methods", status_code=201)
    def register_payment_method(request: NewPaymentMethodRequest):
        """
        Registers a payment method for an environment.

        Returns:
            dict: The stored payment method including its generated id.
        """
        method = registry.register(PaymentMethod(
            name=request.name,
            type=request.type,
            environment=request.environment or registry.environment,
            active=request.active,
        ))
        return method.model_dump(mode="json")

    @app.post("/v1/customers", status_code=201)
    def register_customer(request: NewCustomerRequest):
        customer = Customer(
            id=request.customerId,
            email=request.email,
            store_credits=[
                StoreCredit(amount=c.amount, priority=c.priority, currency=c.currency)
                for c in request.storeCredits
            ],
        )
        repository.add_customer(customer)
        log.info(f"Kunde {customer.id} mit {len(customer.store_credits)} Store Credit(s) registriert.")
        return customer_snapshot(customer)

    @app.post("/v1/orders", status_code=201)
    def submit_order(request: NewOrderRequest):
        """
        Receives a new order from the shop frontend.

        The order starts in state 'cart'. Its total is taken as computed by the shop.

        Raises:
            HTTPException(404): If the referenced customer is unknown.
            HTTPException(409): If an order with the same id exists.
        """
        log_prefix = f"[Order: {request.orderId}]"
        try:
            customer = repository.get_customer(request.customerId) if request.customerId else None
            order = repository.add_order(Order(
                id=request.orderId,
                total=request.totalAmount,
                currency=request.currency,
                customer=customer,
                line_items=request.items,
            ))
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))
        except ValueError as e:
            raise _error(409, "duplicate_order", str(e))

        log.info(f"{log_prefix} Neue Bestellung angenommen (Summe: {order.total} {order.currency}).")
        return order_snapshot(order)

    @app.post("/v1/orders/{order_id}/payments", status_code=201)
    def add_card_payment(order_id: str, request: NewCardPaymentRequest):
        """
        Adds a credit card payment in state 'checkout' to an open order.

        Raises:
            HTTPException(404): Unknown order or payment method.
            HTTPException(409): Order already in confirm, complete or canceled.
            HTTPException(422): Payment method is not a credit card method.
        """
        try:
            with repository.locked(order_id) as order:
                method = registry.get(request.paymentMethodId)
                if method.type != PaymentMethodType.CREDIT_CARD:
                    raise _error(422, "unsupported_payment_method",
                                 "Credit cards are the only other supported payment type")
                if order.state in (OrderState.CONFIRM, OrderState.COMPLETE, OrderState.CANCELED):
                    raise _error(409, "invalid_state", f"Order {order_id} is {order.state.value}")

                payment = Payment(
                    amount=request.amount,
                    source=CreditCard(brand=request.brand, last_digits=request.lastDigits, name=request.name),
                    payment_method=method,
                )
                order.payments.append(payment)
                log.info(f"[Order: {order_id}] Kreditkartenzahlung {payment.id} über {payment.amount} hinzugefügt.")
                return order_snapshot(order)
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))

    @app.post("/v1/orders/{order_id}/next")
    def advance_order(order_id: str):
        """
        Advances the order one checkout step.

        Raises:
            HTTPException(404): Unknown order.
            HTTPException(409): Order cannot advance from its state.
            HTTPException(422): The order cannot be funded; the state is unchanged.
            HTTPException(500): Broken payment configuration.
        """
        log_prefix = f"[Order: {order_id}]"
        try:
            with repository.locked(order_id) as order:
                result = state_machine.advance(order)
                if not result.ok:
                    raise HTTPException(status_code=422, detail={
                        "errorCode": "unable_to_fund",
                        "errors": [e.model_dump() for e in result.errors],
                    })
                return order_snapshot(order)
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))
        except InvalidTransitionError as e:
            raise _error(409, "invalid_transition", str(e))
        except ConfigurationError as e:
            log.critical(f"{log_prefix} Konfigurationsfehler, Übergang abgebrochen: {e}")
            raise _error(500, "configuration_error", str(e))

    @app.post("/v1/orders/{order_id}/cancel")
    def cancel_order(order_id: str):
        try:
            with repository.locked(order_id) as order:
                state_machine.cancel(order)
                return order_snapshot(order)
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))
        except InvalidTransitionError as e:
            raise _error(409, "invalid_transition", str(e))

    @app.get("/v1/orders/{order_id}")
    def get_order(order_id: str):
        try:
            return order_snapshot(repository.get_order(order_id))
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))

    @app.get("/v1/orders/{order_id}/store-credit")
    def get_store_credit_summary(order_id: str):
        """
        Returns the store credit figures of an order.

        Before confirm the applicable amount is an estimate; from confirm on it is
        the sum of the recorded store credit payments.
        """
        try:
            return store_credit_summary(repository.get_order(order_id)).model_dump(mode="json")
        except NotFoundError as e:
            raise _error(404, "not_found", str(e))

    # Health Check Endpoint
    @app.get("/health")
    def health_check():
        """
        Simple health check endpoint.

        Returns:
            dict: A basic JSON object indicating service availability.
        """
        return {"status": "ok", "environment": registry.environment}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
