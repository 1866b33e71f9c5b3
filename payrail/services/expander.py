"""Leg expander: turns a confirmed disbursement into per-recipient legs."""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from payrail.exceptions import LegExpansionError
from payrail.models.disbursement import (
    Disbursement,
    DisbursementKind,
    DisbursementStatus,
    compute_leg_id,
)
from payrail.services.ports import ChainClient, RosterEntry

logger = logging.getLogger(__name__)

# Recipient placeholder for the single leg produced when a batch has no decodable transfers
AGGREGATE_RECIPIENT = "batch-aggregate"
AGGREGATE_DISPLAY_NAME = "Batch Payroll"

EXPANDABLE_STATUSES = (
    DisbursementStatus.CONFIRMED,
    DisbursementStatus.EXPANDED,
    DisbursementStatus.NOTIFIED,
)


@dataclass(slots=True)
class ExpandedLeg:
    """A computed leg, not yet persisted."""
    parent_transaction_id: str
    recipient_address: str
    amount: int
    position: int
    is_degraded: bool = False
    override_name: Optional[str] = None
    override_email: Optional[str] = None

    @property
    def leg_id(self) -> str:
        return compute_leg_id(self.parent_transaction_id, self.recipient_address)


class Roster:
    """Caller-supplied recipients indexed by address (exact, then case-insensitive)."""

    def __init__(self, entries: Optional[Iterable[RosterEntry]] = None):
        self._exact: Dict[str, RosterEntry] = {}
        self._folded: Dict[str, RosterEntry] = {}
        for entry in entries or []:
            self._exact.setdefault(entry.address, entry)
            self._folded.setdefault(entry.address.lower(), entry)

    def __len__(self) -> int:
        return len(self._exact)

    def get(self, address: str) -> Optional[RosterEntry]:
        return self._exact.get(address) or self._folded.get(address.lower())


class LegExpander:
    """
    Expands a confirmed disbursement into legs.

    Batch legs come from the on-chain transfer events, never from the
    caller's pre-broadcast intent. Direct legs are synthesized from the
    disbursement itself. Repeated expansion of the same transaction yields
    the same leg ids and amounts.
    """

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def expand(
        self,
        disbursement: Disbursement,
        roster: Optional[Roster] = None
    ) -> List[ExpandedLeg]:
        """Compute the legs of a confirmed disbursement."""
        if disbursement.status not in EXPANDABLE_STATUSES:
            raise LegExpansionError(
                f"Disbursement {disbursement.transaction_id} is {disbursement.status.value}, not confirmed"
            )

        roster = roster or Roster()

        if disbursement.kind == DisbursementKind.DIRECT:
            return [self._direct_leg(disbursement, roster)]

        events = await self.chain.get_transfer_events(disbursement.transaction_id)
        if not events:
            logger.warning(
                f"Leg-count mismatch: confirmed batch {disbursement.transaction_id} has no transfer events, "
                f"recording a degraded leg for declared total {disbursement.declared_total}"
            )
            return [
                ExpandedLeg(
                    parent_transaction_id=disbursement.transaction_id,
                    recipient_address=AGGREGATE_RECIPIENT,
                    amount=disbursement.declared_total,
                    position=0,
                    is_degraded=True,
                    override_name=AGGREGATE_DISPLAY_NAME,
                )
            ]

        legs: Dict[str, ExpandedLeg] = {}
        for event in events:
            leg = legs.get(event.recipient_address)
            if leg is not None:
                # Same recipient paid twice in one call: one leg, summed amount
                leg.amount += event.amount
                continue

            entry = roster.get(event.recipient_address)
            legs[event.recipient_address] = ExpandedLeg(
                parent_transaction_id=disbursement.transaction_id,
                recipient_address=event.recipient_address,
                amount=event.amount,
                position=len(legs),
                override_name=entry.name if entry else None,
                override_email=entry.email if entry else None,
            )

        expanded = list(legs.values())
        transferred = sum(event.amount for event in events)
        if disbursement.declared_total != transferred:
            logger.info(
                f"Batch {disbursement.transaction_id}: declared {disbursement.declared_total}, "
                f"transferred {transferred} across {len(expanded)} legs"
            )
        return expanded

    def _direct_leg(self, disbursement: Disbursement, roster: Roster) -> ExpandedLeg:
        if not disbursement.recipient_address:
            raise LegExpansionError(
                f"Direct disbursement {disbursement.transaction_id} has no recipient address"
            )
        entry = roster.get(disbursement.recipient_address)
        return ExpandedLeg(
            parent_transaction_id=disbursement.transaction_id,
            recipient_address=disbursement.recipient_address,
            amount=disbursement.declared_total,
            position=0,
            override_name=entry.name if entry else None,
            override_email=entry.email if entry else None,
        )
