"""API dependencies for dependency injection."""
from typing import Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payrail.config import Settings, get_settings
from payrail.database import get_db
from payrail.services.ledger import LedgerService
from payrail.services.notifier import MailjetNotifier
from payrail.services.orchestrator import DisbursementOrchestrator
from payrail.services.ports import ChainClient, Notifier


def get_correlation_id(
    request: Request,
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-ID")
) -> str:
    """Get or generate correlation ID for request tracing."""
    state_id = getattr(request.state, "correlation_id", None)
    return state_id or x_correlation_id or str(uuid4())


def get_chain_client(request: Request) -> ChainClient:
    """Stacks API client opened by the application lifespan."""
    chain = getattr(request.app.state, "chain_client", None)
    if chain is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chain client not available"
        )
    return chain


def get_notifier(
    request: Request,
    settings: Settings = Depends(get_settings)
) -> Notifier:
    """Notifier shared through app state, or a fresh Mailjet notifier."""
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or MailjetNotifier(settings)


# Service dependencies

async def get_ledger_service(db: AsyncSession = Depends(get_db)) -> LedgerService:
    """Get ledger service instance."""
    return LedgerService(db)


async def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    chain: ChainClient = Depends(get_chain_client),
    notifier: Notifier = Depends(get_notifier),
    ledger: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_settings)
) -> DisbursementOrchestrator:
    """Get disbursement orchestrator instance."""
    return DisbursementOrchestrator(
        db=db,
        chain=chain,
        notifier=notifier,
        ledger=ledger,
        settings=settings,
    )
