"""Confirmation poller: waits for a broadcast transaction to reach a terminal status."""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from stacks_api_adapter import ChainTxStatus

from payrail.services.ports import ChainClient

logger = logging.getLogger(__name__)


class ConfirmationOutcome(str, enum.Enum):
    """Terminal answer of one polling run."""
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"  # Inconclusive, retry from a later trigger


@dataclass(slots=True)
class PollResult:
    """Tagged result of a polling run."""
    outcome: ConfirmationOutcome
    attempts: int
    last_status: Optional[ChainTxStatus] = None
    chain_errors: int = 0
    cancelled: bool = False

    @property
    def is_confirmed(self) -> bool:
        return self.outcome == ConfirmationOutcome.CONFIRMED


class ConfirmationPoller:
    """
    Polls the chain client until a transaction succeeds, fails, or the
    attempt budget runs out.

    Read-only: running it twice for the same transaction has no effect beyond
    the extra chain queries. Chain client errors and UNKNOWN statuses count as
    "not yet final" and consume an attempt; only an explicit failure status
    yields FAILED.
    """

    def __init__(self, chain: ChainClient, stop_event: Optional[asyncio.Event] = None):
        self.chain = chain
        self.stop_event = stop_event

    @property
    def _stopping(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def await_confirmation(
        self,
        transaction_id: str,
        max_attempts: int,
        interval_ms: int
    ) -> PollResult:
        """Poll until terminal or until max_attempts queries have been made."""
        if not transaction_id:
            raise ValueError("transaction_id must not be empty")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")

        last_status: Optional[ChainTxStatus] = None
        chain_errors = 0

        for attempt in range(1, max_attempts + 1):
            if self._stopping:
                logger.info(f"Polling for {transaction_id} interrupted by shutdown before attempt {attempt}")
                return PollResult(
                    outcome=ConfirmationOutcome.TIMED_OUT,
                    attempts=attempt - 1,
                    last_status=last_status,
                    chain_errors=chain_errors,
                    cancelled=True,
                )

            try:
                last_status = await self.chain.get_transaction_status(transaction_id)
            except Exception as e:
                chain_errors += 1
                last_status = None
                logger.warning(f"Attempt {attempt}/{max_attempts} for {transaction_id}: chain client error: {e}")
            else:
                logger.info(f"Attempt {attempt}/{max_attempts} for {transaction_id}: status = {last_status.value}")

                if last_status == ChainTxStatus.SUCCESS:
                    return PollResult(
                        outcome=ConfirmationOutcome.CONFIRMED,
                        attempts=attempt,
                        last_status=last_status,
                        chain_errors=chain_errors,
                    )

                if last_status == ChainTxStatus.FAILED:
                    logger.warning(f"Transaction {transaction_id} failed on-chain")
                    return PollResult(
                        outcome=ConfirmationOutcome.FAILED,
                        attempts=attempt,
                        last_status=last_status,
                        chain_errors=chain_errors,
                    )

            if attempt < max_attempts:
                interrupted = await self._sleep(interval_ms)
                if interrupted:
                    logger.info(f"Polling for {transaction_id} interrupted by shutdown after attempt {attempt}")
                    return PollResult(
                        outcome=ConfirmationOutcome.TIMED_OUT,
                        attempts=attempt,
                        last_status=last_status,
                        chain_errors=chain_errors,
                        cancelled=True,
                    )

        logger.info(f"Transaction {transaction_id} not final after {max_attempts} attempts")
        return PollResult(
            outcome=ConfirmationOutcome.TIMED_OUT,
            attempts=max_attempts,
            last_status=last_status,
            chain_errors=chain_errors,
        )

    async def _sleep(self, interval_ms: int) -> bool:
        """Sleep between attempts. Returns True if shutdown was requested."""
        interval = interval_ms / 1000
        if self.stop_event is None:
            await asyncio.sleep(interval)
            return False

        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True
