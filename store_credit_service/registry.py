"""
registry.py — Payment Method Registry

Holds the payment methods configured for the service and answers lookups
for one deployment environment. The registry is passed explicitly to the
allocation code; there is no global lookup.
"""

import logging
from typing import Iterable, List, Optional

from .errors import ConfigurationError, NotFoundError
from .models import PaymentMethod, PaymentMethodType

log = logging.getLogger(__name__)


class PaymentMethodRegistry:
    """
    In-memory registry of payment methods for a single environment.

    Args:
        environment (str): Environment used to filter lookups (e.g. 'production').
        methods (Iterable[PaymentMethod], optional): Initially registered methods.
    """

    def __init__(self, environment: str, methods: Optional[Iterable[PaymentMethod]] = None):
        self.environment = environment
        self._methods: List[PaymentMethod] = list(methods or [])

    def register(self, method: PaymentMethod) -> PaymentMethod:
        self._methods.append(method)
        log.info(f"Zahlungsart registriert: {method.name} ({method.type.value}, Umgebung: {method.environment})")
        return method

    def get(self, method_id: str) -> PaymentMethod:
        for method in self._methods:
            if method.id == method_id:
                return method
        raise NotFoundError(f"Payment method {method_id} not found")

    def active_methods(self, method_type: PaymentMethodType) -> List[PaymentMethod]:
        return [
            m for m in self._methods
            if m.type == method_type and m.active and m.environment == self.environment
        ]

    def find_single_store_credit_method(self) -> PaymentMethod:
        """
        Resolves the one active store credit payment method of the environment.

        Returns:
            PaymentMethod: The store credit payment method.

        Raises:
            ConfigurationError: If none or more than one method is configured.
        """
        methods = self.active_methods(PaymentMethodType.STORE_CREDIT)
        if len(methods) > 1:
            log.critical(f"{len(methods)} Store-Credit-Zahlungsarten in Umgebung '{self.environment}' gefunden.")
            raise ConfigurationError("Too many store credit payment methods found")
        if not methods:
            log.critical(f"Keine Store-Credit-Zahlungsart in Umgebung '{self.environment}' gefunden.")
            raise ConfigurationError("Store credit payment method could not be found")
        return methods[0]
