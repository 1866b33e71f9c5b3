"""Main FastAPI application."""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stacks_api_adapter import StacksAPIClient

from payrail.config import get_settings
from payrail.database import async_session_maker, ping_database
from payrail.api import disbursements_router, ledger_router
from payrail.schemas.common import ErrorResponse
from payrail.services.notifier import MailjetNotifier
from payrail.services.settlement_listener import SettlementListener

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()

# Global settlement listener instance
settlement_listener: Optional[SettlementListener] = None
settlement_listener_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global settlement_listener, settlement_listener_task

    logger.info(f"Starting Payrail settlement service ({settings.stacks_network})...")

    async with StacksAPIClient(settings.stacks_api_settings) as chain_client:
        app.state.chain_client = chain_client
        app.state.notifier = MailjetNotifier(settings)

        # Re-drives Broadcast/TimedOut/Confirmed/Expanded disbursements
        if settings.settlement_listener_enabled:
            settlement_listener = SettlementListener(
                session_maker=async_session_maker,
                chain=chain_client,
                notifier=app.state.notifier,
                settings=settings,
            )
            settlement_listener_task = asyncio.create_task(settlement_listener.start())
            logger.info("Settlement listener started")
        else:
            logger.info("Settlement listener disabled")

        yield

        # Shutdown
        logger.info("Shutting down...")

        if settlement_listener:
            await settlement_listener.stop()
        if settlement_listener_task:
            try:
                # The stop event interrupts poller sleeps; give in-flight runs a moment to record
                await asyncio.wait_for(settlement_listener_task, timeout=10)
            except asyncio.TimeoutError:
                logger.warning("Settlement listener did not stop in time, cancelling")
                settlement_listener_task.cancel()
            except asyncio.CancelledError:
                pass

        app.state.chain_client = None

    logger.info("Shutdown complete")


app = FastAPI(
    title="Payrail - Disbursement Settlement Service",
    description="""
## Payroll disbursement confirmation and reconciliation (Stacks)

### Features
- **Confirmation Poller**: bounded polling of broadcast transactions until success, failure or timeout
- **Leg Expander**: splits a confirmed batch payroll call into per-recipient legs from on-chain transfer events
- **Identity Resolver**: display names from the caller's roster, the team directory, or the address
- **Notifications**: one "payment sent" email per leg, at most once
- **Ledger**: append-only outcome log with a per-transaction hash chain
- **Settlement Listener**: re-drives disbursements that have not settled yet
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


def get_allowed_origins():
    """Get allowed CORS origins from environment or defaults."""
    env_origins = os.getenv("CORS_ORIGINS", "")
    if env_origins:
        return [origin.strip() for origin in env_origins.split(",") if origin.strip()]

    return [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Echo X-Correlation-ID, generating one when the caller sent none."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            correlation_id=getattr(request.state, "correlation_id", "unknown"),
            error="Internal server error",
            error_code="INTERNAL_ERROR",
        ).model_dump(mode="json")
    )


# Include routers
app.include_router(disbursements_router)
app.include_router(ledger_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "database": "ok" if await ping_database() else "unavailable",
        "environment": settings.environment,
        "stacks_network": settings.stacks_network,
        "settlement_listener_running": settlement_listener is not None and settlement_listener.running
    }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Payrail Settlement API",
        "version": "1.0.0",
        "docs": "/docs",
        "openapi": "/openapi.json"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("payrail.main:app", host="0.0.0.0", port=8000, reload=True)
