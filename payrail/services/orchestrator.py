"""Disbursement Orchestrator - drives a disbursement through its state machine.

Flow: BROADCAST -> POLLING -> CONFIRMED -> EXPANDED -> NOTIFIED

Polling strictly precedes expansion, which strictly precedes notification.
A FAILED or TIMED_OUT poll outcome is recorded to the ledger and the run ends
there: no leg is expanded and no recipient is notified for a payment that
did not settle.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payrail.config import Settings, get_settings
from payrail.exceptions import (
    DisbursementConflictError,
    DisbursementNotFoundError,
    InvalidTransitionError,
)
from payrail.models.disbursement import (
    Disbursement,
    DisbursementKind,
    DisbursementLeg,
    DisbursementStatus,
    NotificationState,
    TERMINAL_STATUSES,
)
from payrail.models.ledger import LedgerRecord
from payrail.schemas.disbursement import DisbursementCreate
from payrail.services.confirmation import ConfirmationOutcome, ConfirmationPoller, PollResult
from payrail.services.expander import ExpandedLeg, LegExpander, Roster
from payrail.services.identity import IdentityResolver, TeamMemberIdentityStore
from payrail.services.ports import (
    ChainClient,
    DisbursedNotice,
    IdentityStore,
    LedgerStore,
    Notifier,
    NotificationResult,
    OutcomeRecord,
    RosterEntry,
)

logger = logging.getLogger(__name__)

SKIP_NO_CONTACT = "no_contact"
SKIP_DEGRADED = "degraded_leg"

_POLL_OUTCOME_STATUS = {
    ConfirmationOutcome.CONFIRMED: DisbursementStatus.CONFIRMED,
    ConfirmationOutcome.FAILED: DisbursementStatus.FAILED,
    ConfirmationOutcome.TIMED_OUT: DisbursementStatus.TIMED_OUT,
}


@dataclass
class RunResult:
    """What one orchestrator run did."""
    disbursement: Disbursement
    poll: Optional[PollResult] = None
    ledger_record: Optional[LedgerRecord] = None
    legs_notified: int = 0
    legs_failed: int = 0
    legs_skipped: int = 0

    @property
    def status(self) -> DisbursementStatus:
        return self.disbursement.status


class DisbursementOrchestrator:
    """
    Orchestrates one disbursement per run.

    Runs are re-entrant: a disbursement left in CONFIRMED or EXPANDED resumes
    without polling, legs are upserted by their deterministic id, and only
    legs still NOT_SENT are notified. Every run that drives the state machine
    appends exactly one ledger record.
    """

    def __init__(
        self,
        db: AsyncSession,
        chain: ChainClient,
        notifier: Notifier,
        ledger: LedgerStore,
        identity_store: Optional[IdentityStore] = None,
        settings: Optional[Settings] = None,
        stop_event: Optional[asyncio.Event] = None
    ):
        self.db = db
        self.notifier = notifier
        self.ledger = ledger
        self.settings = settings or get_settings()

        self.poller = ConfirmationPoller(chain, stop_event)
        self.expander = LegExpander(chain)
        # Without an explicit store, lookups go to team_members scoped to the disbursement's organization
        self.resolver = IdentityResolver(identity_store) if identity_store is not None else None

    async def register(self, data: DisbursementCreate) -> Disbursement:
        """Record a freshly broadcast transaction in BROADCAST.

        Re-registering the same transaction with identical parameters returns
        the existing row.
        """
        existing = await self._find(data.transaction_id)
        if existing:
            mismatches = {
                field: {"registered": getattr(existing, field), "requested": getattr(data, field)}
                for field in ("kind", "declared_total", "period_reference", "recipient_address")
                if getattr(existing, field) != getattr(data, field)
            }
            if mismatches:
                raise DisbursementConflictError(
                    f"Transaction {data.transaction_id} already registered with different parameters",
                    details={k: {kk: str(vv) for kk, vv in v.items()} for k, v in mismatches.items()},
                )
            return existing

        disbursement = Disbursement(
            transaction_id=data.transaction_id,
            kind=data.kind,
            declared_total=data.declared_total,
            period_reference=data.period_reference if data.kind == DisbursementKind.BATCH else None,
            sender_address=data.sender_address,
            recipient_address=data.recipient_address,
            organization_id=data.organization_id,
            status=DisbursementStatus.BROADCAST,
        )

        self.db.add(disbursement)
        await self.db.flush()
        await self.db.refresh(disbursement, ["legs"])

        logger.info(
            f"Registered {data.kind.value} disbursement {data.transaction_id} "
            f"(declared {data.declared_total} micro-STX)"
        )
        return disbursement

    async def get_disbursement(self, transaction_id: str) -> Disbursement:
        """Get a disbursement with its legs."""
        disbursement = await self._find(transaction_id)
        if not disbursement:
            raise DisbursementNotFoundError(f"Disbursement {transaction_id} not found")
        return disbursement

    async def list_disbursements(
        self,
        status: Optional[DisbursementStatus] = None,
        organization_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Disbursement]:
        """List disbursements, newest first."""
        query = select(Disbursement)
        if status:
            query = query.where(Disbursement.status == status)
        if organization_id:
            query = query.where(Disbursement.organization_id == organization_id)
        query = query.order_by(Disbursement.created_at.desc()).offset(offset).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _find(self, transaction_id: str) -> Optional[Disbursement]:
        result = await self.db.execute(
            select(Disbursement).where(Disbursement.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def run(
        self,
        transaction_id: str,
        roster: Optional[Iterable[RosterEntry]] = None,
        correlation_id: Optional[str] = None
    ) -> RunResult:
        """Drive a disbursement as far as the chain allows in one invocation."""
        disbursement = await self.get_disbursement(transaction_id)
        correlation_id = correlation_id or str(uuid4())
        run_result = RunResult(disbursement=disbursement)

        if disbursement.status in TERMINAL_STATUSES:
            logger.info(f"Disbursement {transaction_id} already {disbursement.status.value}, nothing to do")
            return run_result

        if disbursement.status in (
            DisbursementStatus.BROADCAST,
            DisbursementStatus.TIMED_OUT,
            DisbursementStatus.POLLING,
        ):
            poll = await self._poll(disbursement)
            run_result.poll = poll

            if not poll.is_confirmed:
                run_result.ledger_record = await self._record(
                    disbursement, correlation_id, poll=poll
                )
                await self._checkpoint()
                return run_result

        roster = Roster(roster)

        if disbursement.status == DisbursementStatus.CONFIRMED:
            try:
                expanded = await self.expander.expand(disbursement, roster)
            except Exception as e:
                # Stays CONFIRMED; the next trigger re-runs expansion
                logger.error(f"Expansion of {transaction_id} failed: {e}", exc_info=True)
                run_result.ledger_record = await self._record(
                    disbursement, correlation_id, poll=run_result.poll,
                    extra={"expansion_error": str(e)},
                )
                await self._checkpoint()
                return run_result

            self._upsert_legs(disbursement, expanded)
            self._transition_status(disbursement, DisbursementStatus.EXPANDED)
            # Legs must be durable before any recipient is contacted
            await self._checkpoint()

        if disbursement.status == DisbursementStatus.EXPANDED:
            resolver = self.resolver or IdentityResolver(
                TeamMemberIdentityStore(self.db, disbursement.organization_id)
            )
            await self._notify_legs(disbursement, roster, resolver, run_result)
            self._transition_status(disbursement, DisbursementStatus.NOTIFIED)
            # Sent states must survive a failed ledger write, or the next run resends
            await self._checkpoint()

        run_result.ledger_record = await self._record(
            disbursement, correlation_id, poll=run_result.poll
        )
        await self._checkpoint()
        return run_result

    async def _poll(self, disbursement: Disbursement) -> PollResult:
        if disbursement.status != DisbursementStatus.POLLING:
            self._transition_status(disbursement, DisbursementStatus.POLLING)
        await self.db.flush()

        poll = await self.poller.await_confirmation(
            disbursement.transaction_id,
            self.settings.confirmation_max_attempts,
            self.settings.confirmation_interval_ms,
        )

        disbursement.poll_attempts = (disbursement.poll_attempts or 0) + poll.attempts
        if poll.last_status is not None:
            disbursement.last_chain_status = poll.last_status.value

        self._transition_status(disbursement, _POLL_OUTCOME_STATUS[poll.outcome])
        if poll.is_confirmed:
            disbursement.confirmed_at = datetime.utcnow()

        logger.info(
            f"Disbursement {disbursement.transaction_id} poll outcome {poll.outcome.value} "
            f"after {poll.attempts} attempts"
            + (" (shutdown requested)" if poll.cancelled else "")
        )
        await self.db.flush()
        return poll

    def _transition_status(self, disbursement: Disbursement, new_status: DisbursementStatus):
        """Move to new_status or raise if the state machine forbids it."""
        if not disbursement.can_transition_to(new_status):
            logger.warning(
                f"Invalid transition for disbursement {disbursement.transaction_id}: "
                f"{disbursement.status.value} -> {new_status.value}"
            )
            raise InvalidTransitionError(
                f"Cannot move {disbursement.transaction_id} from "
                f"{disbursement.status.value} to {new_status.value}"
            )
        disbursement.status = new_status
        disbursement.updated_at = datetime.utcnow()

    def _upsert_legs(self, disbursement: Disbursement, expanded: List[ExpandedLeg]):
        """Insert new legs; existing legs keep their notification state."""
        existing = {leg.leg_id: leg for leg in disbursement.legs}

        for item in expanded:
            leg = existing.get(item.leg_id)
            if leg is not None:
                if leg.amount != item.amount:
                    logger.warning(
                        f"Leg {item.leg_id} of {disbursement.transaction_id} re-expanded with "
                        f"amount {item.amount}, stored {leg.amount}"
                    )
                    leg.amount = item.amount
                leg.position = item.position
                if item.override_name and not leg.override_name:
                    leg.override_name = item.override_name
                continue

            leg = DisbursementLeg(
                leg_id=item.leg_id,
                parent_transaction_id=disbursement.transaction_id,
                recipient_address=item.recipient_address,
                amount=item.amount,
                position=item.position,
                is_degraded=item.is_degraded,
                override_name=item.override_name,
                notification_state=NotificationState.NOT_SENT,
            )
            self.db.add(leg)
            disbursement.legs.append(leg)

        logger.info(
            f"Disbursement {disbursement.transaction_id} expanded into {len(expanded)} legs "
            f"totalling {sum(item.amount for item in expanded)} micro-STX"
        )

    async def _prepare_notice(
        self,
        disbursement: Disbursement,
        leg: DisbursementLeg,
        roster: Roster,
        resolver: IdentityResolver
    ) -> Tuple[Optional[DisbursedNotice], Optional[str]]:
        """Resolve name and contact for a leg. Returns (notice, skip_reason)."""
        if leg.is_degraded:
            leg.recipient_display_name = leg.override_name
            return None, SKIP_DEGRADED

        entry = roster.get(leg.recipient_address)
        override_name = leg.override_name or (entry.name if entry else None)

        name, identity = await resolver.resolve_with_identity(leg.recipient_address, override_name)
        leg.recipient_display_name = name

        contact = entry.email if entry and entry.email else None
        if not contact:
            if identity is None and override_name:
                identity = await resolver.lookup(leg.recipient_address)
            if identity is not None:
                contact = identity.contact_email

        if not contact:
            return None, SKIP_NO_CONTACT

        return DisbursedNotice(
            recipient_name=name,
            recipient_contact=contact,
            amount=leg.amount,
            transaction_id=disbursement.transaction_id,
            organization_name=self.settings.organization_name,
        ), None

    async def _notify_legs(
        self,
        disbursement: Disbursement,
        roster: Roster,
        resolver: IdentityResolver,
        run_result: RunResult
    ):
        """Attempt each pending leg once. One leg's failure never blocks the others."""
        pending = [leg for leg in disbursement.legs if leg.is_notification_pending]
        if not pending:
            return

        to_send: List[Tuple[DisbursementLeg, DisbursedNotice]] = []
        for leg in pending:
            notice, skip_reason = await self._prepare_notice(disbursement, leg, roster, resolver)
            if notice is None:
                leg.notification_state = NotificationState.SKIPPED_NO_CONTACT
                leg.notification_error = skip_reason
                run_result.legs_skipped += 1
                continue
            to_send.append((leg, notice))

        results = await asyncio.gather(
            *(self.notifier.notify_disbursed(notice) for _, notice in to_send),
            return_exceptions=True,
        )

        for (leg, _), result in zip(to_send, results):
            if isinstance(result, asyncio.CancelledError):
                raise result

            if isinstance(result, Exception):
                logger.error(
                    f"Notifier raised for leg {leg.leg_id} of {disbursement.transaction_id}: {result}",
                    exc_info=result,
                )
                result = NotificationResult(sent=False, error=str(result) or type(result).__name__)

            if result.sent:
                leg.notification_state = NotificationState.SENT
                leg.notification_error = None
                leg.notified_at = datetime.utcnow()
                run_result.legs_notified += 1
            else:
                logger.warning(
                    f"Notification for leg {leg.leg_id} of {disbursement.transaction_id} "
                    f"not delivered: {result.error}"
                )
                leg.notification_state = NotificationState.FAILED
                leg.notification_error = result.error
                run_result.legs_failed += 1

        await self.db.flush()

    async def _record(
        self,
        disbursement: Disbursement,
        correlation_id: str,
        poll: Optional[PollResult] = None,
        extra: Optional[dict] = None
    ) -> LedgerRecord:
        legs = [
            {
                "leg_id": leg.leg_id,
                "recipient_address": leg.recipient_address,
                "amount": leg.amount,
                "is_degraded": leg.is_degraded,
                "display_name": leg.recipient_display_name,
                "notification_state": leg.notification_state.value,
            }
            for leg in sorted(disbursement.legs, key=lambda item: item.position)
        ]

        detail = {
            "kind": disbursement.kind.value,
            "declared_total": disbursement.declared_total,
            "poll_attempts_total": disbursement.poll_attempts,
            "last_chain_status": disbursement.last_chain_status,
        }
        if poll is not None:
            detail.update({
                "poll_outcome": poll.outcome.value,
                "poll_attempts": poll.attempts,
                "chain_errors": poll.chain_errors,
                "cancelled": poll.cancelled,
            })
        if extra:
            detail.update(extra)

        return await self.ledger.record_outcome(
            OutcomeRecord(
                transaction_id=disbursement.transaction_id,
                status=disbursement.status.value,
                legs=legs,
                recorded_at=datetime.utcnow(),
                correlation_id=correlation_id,
                detail=detail,
            )
        )

    async def _checkpoint(self):
        await self.db.commit()
