"""
Admin payment ledger endpoints.

Endpoints:
- GET /api/admin/payments - List ledger records
- POST /api/admin/payments/expire - Close abandoned intents now
- POST /api/admin/payments/reconcile - Re-apply missing grants now
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_payment_ledger, get_payment_orchestrator, require_admin
from src.api.schemas import ExpiryReportResponse, PaymentRecordResponse, ReconcileReportResponse
from src.components.payments import PaymentOrchestrator
from src.core.ports.db import PaymentLedgerPort

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("", response_model=list[PaymentRecordResponse])
def list_payments(
    status: Literal["pending", "completed", "failed"] | None = Query(default=None),
    user_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    ledger: PaymentLedgerPort = Depends(get_payment_ledger),
) -> list[PaymentRecordResponse]:
    if user_id is not None:
        records = [r for r in ledger.list_by_user(user_id) if status is None or r.status == status]
        records = records[:limit]
    else:
        records = ledger.list_by_status(status, limit=limit)
    return [PaymentRecordResponse.from_record(r) for r in records]


@router.post("/expire", response_model=ExpiryReportResponse)
def expire_payments(
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> ExpiryReportResponse:
    return ExpiryReportResponse.from_report(orchestrator.expire_stale())


@router.post("/reconcile", response_model=ReconcileReportResponse)
def reconcile_payments(
    batch_size: int = Query(default=1000, ge=1, le=10000),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> ReconcileReportResponse:
    return ReconcileReportResponse.from_report(orchestrator.reconcile(batch_size=batch_size))
