"""
This module provides communication clients for external systems used by the store credit service:
- Gift Card Service (REST API)
The client encapsulates its protocol logic, error handling, and connection management.
"""

import logging
from decimal import Decimal

import httpx

from . import config
from .errors import GiftCardIssuanceError
from .models import GiftCard, LineItem

log = logging.getLogger(__name__)


# --- Gift Card Client (REST) ---
class GiftCardClient:
    """
    Client for the Gift Card Service (REST API).
    Issues one virtual gift card per purchased gift card unit.
    """
    def __init__(self, base_url: str = None, transport: httpx.BaseTransport = None):
        """
        Initializes the HTTP client with proper timeout configuration.
        Args:
            base_url (str, optional): Overrides `GIFT_CARD_SERVICE_URL`.
            transport (httpx.BaseTransport, optional): Custom transport, e.g. for tests.
        """
        timeout_config = httpx.Timeout(config.HTTP_TIMEOUT, read=config.HTTP_READ_TIMEOUT)
        self.client = httpx.Client(
            base_url=base_url or config.GIFT_CARD_SERVICE_URL,
            timeout=timeout_config,
            transport=transport,
        )

    def close(self):
        """Closes the HTTP client session."""
        self.client.close()

    def issue_gift_card(self, order_id: str, line_item: LineItem, unit: int, purchaser_id: str = None) -> GiftCard:
        """
        Issues a virtual gift card for one unit of a purchased line item.
        Args:
            order_id (str): Order the gift card was bought with.
            line_item (LineItem): The gift card line item.
            unit (int): Index of the unit within the line item's quantity.
            purchaser_id (str, optional): Customer who bought the gift card.
        Returns:
            GiftCard: The issued gift card.
        Raises:
            GiftCardIssuanceError: If the service rejects the request, times out or is unreachable.
        """
        # Gleicher Schlüssel bei Wiederholung -> keine doppelte Ausgabe
        idempotency_key = f"{order_id}-{line_item.sku}-{unit}"
        payload = {
            "amount": str(line_item.price),
            "currency": line_item.currency,
            "purchaserId": purchaser_id,
            "lineItemSku": line_item.sku,
            "referenceId": order_id
        }
        headers = {"Idempotency-Key": idempotency_key}

        try:
            response = self.client.post("/v1/gift-cards", json=payload, headers=headers)
            response.raise_for_status()  # Löst HTTPStatusError bei 4xx/5xx aus
            data = response.json()
        except httpx.HTTPStatusError as e:
            log.error(f"[Order: {order_id}] HTTP-Fehler bei Gift-Card-Ausgabe ({e.response.status_code}): {e.response.text}")
            raise GiftCardIssuanceError(f"Gift card service returned HTTP {e.response.status_code}") from e
        except (httpx.ReadTimeout, httpx.ConnectError) as e:
            log.error(f"[Order: {order_id}] Gift Card Service nicht erreichbar ({e}).")
            raise GiftCardIssuanceError(f"Gift card service unavailable: {e}") from e

        return GiftCard(
            code=data["code"],
            amount=Decimal(str(data["amount"])),
            currency=data["currency"],
            line_item_sku=line_item.sku,
            purchaser_id=purchaser_id,
        )
