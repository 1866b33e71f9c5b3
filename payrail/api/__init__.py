"""API routers package."""
from payrail.api.disbursements import router as disbursements_router
from payrail.api.ledger import router as ledger_router

__all__ = [
    "disbursements_router",
    "ledger_router",
]
