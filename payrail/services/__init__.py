"""Business logic services."""
from payrail.services.confirmation import ConfirmationOutcome, ConfirmationPoller, PollResult
from payrail.services.expander import LegExpander, Roster
from payrail.services.identity import IdentityResolver, TeamMemberIdentityStore
from payrail.services.ledger import LedgerService
from payrail.services.notifier import MailjetNotifier
from payrail.services.orchestrator import DisbursementOrchestrator, RunResult
from payrail.services.settlement_listener import SettlementListener

__all__ = [
    "ConfirmationOutcome",
    "ConfirmationPoller",
    "PollResult",
    "LegExpander",
    "Roster",
    "IdentityResolver",
    "TeamMemberIdentityStore",
    "LedgerService",
    "MailjetNotifier",
    "DisbursementOrchestrator",
    "RunResult",
    "SettlementListener",
]
