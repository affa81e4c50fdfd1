"""
Provider callback endpoint.

Endpoints:
- POST /api/payments/{method}/callback - Provider reports a payment outcome

Callbacks may arrive on any worker and any number of times; the
transaction id is the only correlation key. Resolution is idempotent.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_payment_orchestrator, verify_webhook_secret
from src.api.errors import not_found, payment_http_error
from src.api.schemas import ErrorResponse, MethodName, ProviderOutcome, PurchaseOutcomeResponse
from src.components.payments import PaymentError, PaymentOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


class ProviderCallback(BaseModel):
    transaction_id: str
    status: ProviderOutcome
    reason: str | None = None
    provider_reference: str | None = None


@router.post(
    "/{method}/callback",
    response_model=PurchaseOutcomeResponse,
    dependencies=[Depends(verify_webhook_secret)],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def provider_callback(
    method: MethodName,
    body: ProviderCallback,
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PurchaseOutcomeResponse:
    logger.info(
        "Provider callback: method=%s txn=%s status=%s", method, body.transaction_id, body.status
    )
    try:
        record = orchestrator.record(body.transaction_id)
        if record.provider != method:
            raise not_found("payment_not_found", f"Payment {body.transaction_id} not found")
        if body.provider_reference and body.provider_reference != record.provider_reference:
            logger.warning(
                "Callback reference mismatch: txn=%s expected=%s got=%s",
                body.transaction_id,
                record.provider_reference,
                body.provider_reference,
            )
            raise not_found("payment_not_found", f"Payment {body.transaction_id} not found")
        outcome = orchestrator.resolve(body.transaction_id, body.status, body.reason)
    except PaymentError as e:
        raise payment_http_error(e) from e
    return PurchaseOutcomeResponse.from_outcome(outcome)
