"""
repository.py — In-Memory Storage for Orders and Customers

Orders are mutated only while holding their per-order lock, which
serializes checkout transitions of the same order across request threads.
"""

import threading
from contextlib import contextmanager
from typing import Dict

from .errors import NotFoundError
from .models import Customer, Order


class OrderRepository:

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._customers: Dict[str, Customer] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def add_customer(self, customer: Customer) -> Customer:
        with self._guard:
            self._customers[customer.id] = customer
        return customer

    def get_customer(self, customer_id: str) -> Customer:
        try:
            return self._customers[customer_id]
        except KeyError:
            raise NotFoundError(f"Customer {customer_id} not found")

    def add_order(self, order: Order) -> Order:
        with self._guard:
            if order.id in self._orders:
                raise ValueError(f"Order {order.id} already exists")
            self._orders[order.id] = order
            self._locks[order.id] = threading.Lock()
        return order

    def get_order(self, order_id: str) -> Order:
        try:
            return self._orders[order_id]
        except KeyError:
            raise NotFoundError(f"Order {order_id} not found")

    @contextmanager
    def locked(self, order_id: str):
        """Yields the order while holding its lock."""
        order = self.get_order(order_id)
        with self._locks[order_id]:
            yield order
