"""Ledger API endpoints."""
from typing import List
from fastapi import APIRouter, Depends, Query

from payrail.schemas.common import CorrelatedResponse
from payrail.schemas.ledger import LedgerRecordResponse, LedgerVerifyResponse
from payrail.services.ledger import LedgerService
from payrail.api.deps import get_correlation_id, get_ledger_service

router = APIRouter(prefix="/v1/ledger", tags=["Ledger"])


@router.get("/{transaction_id}", response_model=CorrelatedResponse[List[LedgerRecordResponse]])
async def get_ledger_records(
    transaction_id: str,
    limit: int = Query(100, ge=1, le=1000),
    ledger: LedgerService = Depends(get_ledger_service),
    correlation_id: str = Depends(get_correlation_id)
):
    """Recorded outcomes for a transaction, oldest first."""
    records = await ledger.get_records(transaction_id, limit=limit)

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=[LedgerRecordResponse.model_validate(r) for r in records]
    )


@router.get("/{transaction_id}/verify", response_model=CorrelatedResponse[LedgerVerifyResponse])
async def verify_ledger_chain(
    transaction_id: str,
    ledger: LedgerService = Depends(get_ledger_service),
    correlation_id: str = Depends(get_correlation_id)
):
    """
    Verify the hash chain of a transaction's ledger records.

    Recomputes every record hash and checks each record links to its
    predecessor.
    """
    result = await ledger.verify_chain(transaction_id)

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=result
    )
