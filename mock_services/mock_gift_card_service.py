"""
mock_gift_card_service.py — Mock Implementation of the Gift Card Service (REST API)

This module provides a simulated Gift Card Service for testing the checkout workflow.
It exposes a simple FastAPI application that issues virtual gift cards for
purchased gift card line items.

Simulation Scenarios:
    • Successful issuance
    • Rejected issuance (HTTP 422) for SKUs starting with "GC-REJECT"
    • Timeout simulation for SKUs starting with "GC-TIMEOUT"
    • Idempotent replay: the same Idempotency-Key returns the same gift card

Endpoints:
    POST /v1/gift-cards — Issues one gift card.

Port:
    Default: 8002 (HTTP)
"""

from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field
import logging
import time
import uuid

app = FastAPI(title="Mock Gift Card Service")
logging.basicConfig(level=logging.INFO)

# Idempotency-Key -> ausgegebene Karte
_issued = {}


class GiftCardRequest(BaseModel):
    """
    Represents a gift card issuance request payload.

    Attributes:
        amount (Decimal): Value of the gift card in major currency units.
        currency (str): ISO 4217 currency code (e.g., 'EUR', 'USD').
        purchaserId (str, optional): Customer who bought the gift card.
        lineItemSku (str): SKU of the purchased gift card item.
        referenceId (str): Order the gift card was bought with.
    """
    amount: Decimal = Field(..., gt=0)
    currency: str
    purchaserId: Optional[str] = None
    lineItemSku: str
    referenceId: str


@app.post("/v1/gift-cards", status_code=201)
def issue_gift_card(
        request: GiftCardRequest,
        idempotency_key: str = Header(..., alias="Idempotency-Key")
):
    """
        Issues a virtual gift card.

        Args:
            request (GiftCardRequest): The gift card details.
            idempotency_key (str): Unique key per gift card unit, replays return the stored card.

        Returns:
            dict: The issued gift card with code, amount, currency and createdAt.

        Raises:
            HTTPException(422): If the SKU triggers a rejection.
    """
    logging.info(f"[GCS] Ausgabeanfrage für {request.referenceId} (Idempotenz: {idempotency_key})")

    if idempotency_key in _issued:
        logging.info(f"[GCS] Wiederholte Anfrage {idempotency_key}, liefere bestehende Karte.")
        return _issued[idempotency_key]

    # Scenario simulation
    if request.lineItemSku.startswith("GC-REJECT"):
        logging.warning(f"[GCS] Ausgabe für {request.referenceId} abgelehnt.")
        raise HTTPException(
            status_code=422,
            detail={"errorCode": "issuance_rejected", "message": "Gift Card abgelehnt."}
        )

    if request.lineItemSku.startswith("GC-TIMEOUT"):
        logging.info(f"[GCS] Simuliere Timeout für {request.referenceId}...")
        time.sleep(10)

    gift_card = {
        "code": uuid.uuid4().hex[:16].upper(),
        "amount": str(request.amount),
        "currency": request.currency,
        "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    }
    _issued[idempotency_key] = gift_card
    logging.info(f"[GCS] Gift Card für {request.referenceId} ausgegeben.")
    return gift_card


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)
