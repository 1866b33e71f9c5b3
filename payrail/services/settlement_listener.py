"""Settlement Listener - re-drives disbursements that have not reached a terminal state."""
import asyncio
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from payrail.config import Settings, get_settings
from payrail.models.disbursement import Disbursement, DisbursementStatus
from payrail.services.ledger import LedgerService
from payrail.services.orchestrator import DisbursementOrchestrator
from payrail.services.ports import ChainClient, Notifier

logger = logging.getLogger(__name__)

RESUMABLE_STATUSES = (
    DisbursementStatus.BROADCAST,
    DisbursementStatus.TIMED_OUT,
    DisbursementStatus.CONFIRMED,
    DisbursementStatus.EXPANDED,
)


class SettlementListener:
    """
    Background service that periodically invokes the orchestrator once for
    every disbursement still in BROADCAST, TIMED_OUT, CONFIRMED or EXPANDED.

    Each disbursement gets its own session, so a failure on one does not
    roll back the others. Stopping sets a shutdown event that interrupts
    any poller sleep; an interrupted poll is recorded as TIMED_OUT.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        chain: ChainClient,
        notifier: Notifier,
        settings: Optional[Settings] = None,
        poll_interval: Optional[int] = None,
        batch_size: Optional[int] = None
    ):
        self.session_maker = session_maker
        self.chain = chain
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.poll_interval = poll_interval if poll_interval is not None else self.settings.settlement_listener_poll_interval
        self.batch_size = batch_size or self.settings.settlement_listener_batch_size
        self.stop_event = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Run until stop() is called."""
        self._running = True
        self.stop_event.clear()
        logger.info("Settlement listener started")

        while self._running and not self.stop_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                # Keep running through database or chain outages
                logger.error(f"Settlement listener error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        self._running = False
        logger.info("Settlement listener loop exited")

    async def stop(self):
        """Request shutdown; in-flight polls end as TIMED_OUT at their next sleep."""
        self._running = False
        self.stop_event.set()
        logger.info("Settlement listener stopped")

    async def tick(self) -> int:
        """One pass over resumable disbursements. Returns how many were driven."""
        candidates = await self._pending_disbursements()
        driven = 0

        for transaction_id in candidates:
            if self.stop_event.is_set():
                break
            try:
                await self._drive(transaction_id)
                driven += 1
            except Exception as e:
                logger.error(f"Error driving disbursement {transaction_id}: {e}", exc_info=True)

        return driven

    async def _pending_disbursements(self) -> List[str]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(Disbursement.transaction_id)
                .where(Disbursement.status.in_(RESUMABLE_STATUSES))
                .order_by(Disbursement.updated_at.asc())
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def _drive(self, transaction_id: str):
        correlation_id = f"settlement-listener-{uuid4()}"

        async with self.session_maker() as session:
            orchestrator = DisbursementOrchestrator(
                db=session,
                chain=self.chain,
                notifier=self.notifier,
                ledger=LedgerService(session),
                settings=self.settings,
                stop_event=self.stop_event,
            )
            try:
                result = await orchestrator.run(transaction_id, correlation_id=correlation_id)
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

        logger.info(f"Settlement listener drove {transaction_id} to {result.status.value}")
