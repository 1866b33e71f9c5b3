"""Disbursement API endpoints."""
from decimal import Decimal
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from payrail.config import Settings, get_settings
from payrail.database import get_db
from payrail.exceptions import (
    DisbursementConflictError,
    DisbursementNotFoundError,
    InvalidTransitionError,
)
from payrail.models.disbursement import DisbursementStatus
from payrail.schemas.common import CorrelatedResponse
from payrail.schemas.disbursement import (
    DisbursementCreate,
    DisbursementResponse,
    HistoryRow,
    LegResponse,
    RunRequest,
    RunResponse,
)
from payrail.services.orchestrator import DisbursementOrchestrator
from payrail.services.ports import RosterEntry
from payrail.services.reporting import build_history_rows
from payrail.api.deps import get_correlation_id, get_orchestrator

router = APIRouter(prefix="/v1/disbursements", tags=["Disbursements"])


@router.post("", response_model=CorrelatedResponse[DisbursementResponse], status_code=status.HTTP_201_CREATED)
async def register_disbursement(
    data: DisbursementCreate,
    db: AsyncSession = Depends(get_db),
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    correlation_id: str = Depends(get_correlation_id)
):
    """
    Register a freshly broadcast transaction.

    Registering the same transaction again with identical parameters is a no-op.
    """
    try:
        disbursement = await orchestrator.register(data)
        await db.commit()
    except DisbursementConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, "details": e.details}
        )

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=DisbursementResponse.model_validate(disbursement)
    )


@router.post("/{transaction_id}/run", response_model=CorrelatedResponse[RunResponse])
async def run_disbursement(
    transaction_id: str,
    data: Optional[RunRequest] = None,
    db: AsyncSession = Depends(get_db),
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    correlation_id: str = Depends(get_correlation_id)
):
    """
    Drive a disbursement once: poll, expand, notify and record.

    The optional roster supplies names and emails the caller already knows.
    """
    roster = [
        RosterEntry(address=entry.address, name=entry.name, email=entry.email)
        for entry in (data.roster if data else [])
    ]

    try:
        result = await orchestrator.run(transaction_id, roster=roster, correlation_id=correlation_id)
        await db.commit()
    except DisbursementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InvalidTransitionError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=RunResponse(
            transaction_id=transaction_id,
            status=result.status,
            poll_attempts=result.poll.attempts if result.poll else 0,
            legs_notified=result.legs_notified,
            legs_failed=result.legs_failed,
            legs_skipped=result.legs_skipped,
            ledger_record_id=result.ledger_record.id if result.ledger_record else None,
        )
    )


@router.get("", response_model=CorrelatedResponse[List[DisbursementResponse]])
async def list_disbursements(
    status_filter: Optional[DisbursementStatus] = Query(None, alias="status"),
    organization_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    correlation_id: str = Depends(get_correlation_id)
):
    """List disbursements, newest first."""
    disbursements = await orchestrator.list_disbursements(
        status=status_filter,
        organization_id=organization_id,
        limit=limit,
        offset=offset
    )

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=[DisbursementResponse.model_validate(d) for d in disbursements]
    )


@router.get("/{transaction_id}", response_model=CorrelatedResponse[DisbursementResponse])
async def get_disbursement(
    transaction_id: str,
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    correlation_id: str = Depends(get_correlation_id)
):
    """Get disbursement by transaction id."""
    try:
        disbursement = await orchestrator.get_disbursement(transaction_id)
    except DisbursementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=DisbursementResponse.model_validate(disbursement)
    )


@router.get("/{transaction_id}/legs", response_model=CorrelatedResponse[List[LegResponse]])
async def get_disbursement_legs(
    transaction_id: str,
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    correlation_id: str = Depends(get_correlation_id)
):
    """Get the legs of a disbursement in payout order."""
    try:
        disbursement = await orchestrator.get_disbursement(transaction_id)
    except DisbursementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return CorrelatedResponse(
        correlation_id=correlation_id,
        data=[LegResponse.model_validate(leg) for leg in disbursement.legs]
    )


@router.get("/{transaction_id}/history", response_model=CorrelatedResponse[List[HistoryRow]])
async def get_disbursement_history(
    transaction_id: str,
    stx_price: Optional[Decimal] = Query(None, gt=0, description="STX price in USD for display values"),
    orchestrator: DisbursementOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
    correlation_id: str = Depends(get_correlation_id)
):
    """History rows for a disbursement, one per leg."""
    try:
        disbursement = await orchestrator.get_disbursement(transaction_id)
    except DisbursementNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    rows = build_history_rows(
        disbursement,
        disbursement.legs,
        stx_price_usd=stx_price,
        explorer_link=settings.explorer_link(transaction_id),
    )
    return CorrelatedResponse(correlation_id=correlation_id, data=rows)
