"""In-memory collaborators and constants shared by the test suite."""
from typing import Dict, Iterable, List, Optional

from stacks_api_adapter import ChainTxStatus, TransferEvent

from payrail.services.ports import RecipientIdentity

ALICE = "ST1ALICE00000000000000000000000000000AAAA"
BOB = "ST2BOB0000000000000000000000000000000BBBB"
CAROL = "ST3CAROL000000000000000000000000000000CCCC"
SENDER = "ST3SENDER000000000000000000000000000001M44"
BATCH_TX = "0xbatch00000000000000000000000000000000000000000000000000000000001"
DIRECT_TX = "0xdirect0000000000000000000000000000000000000000000000000000000002"


class FakeChain:
    """Chain client returning scripted statuses and events.

    The last scripted status repeats once the script is exhausted. Exception
    instances in the script are raised instead of returned.
    """

    def __init__(
        self,
        statuses: Iterable = (ChainTxStatus.SUCCESS,),
        events: Optional[Dict[str, List[TransferEvent]]] = None
    ):
        self.statuses = list(statuses)
        self.events = events or {}
        self.status_calls = 0
        self.event_calls = 0

    async def get_transaction_status(self, tx_id: str) -> ChainTxStatus:
        self.status_calls += 1
        status = self.statuses[min(self.status_calls, len(self.statuses)) - 1]
        if isinstance(status, Exception):
            raise status
        return status

    async def get_transfer_events(self, tx_id: str) -> List[TransferEvent]:
        self.event_calls += 1
        return list(self.events.get(tx_id, []))


class FakeIdentityStore:
    """Identity store over a dict, exact match first then case-insensitive."""

    def __init__(self, identities: Optional[Dict[str, RecipientIdentity]] = None):
        self.identities = identities or {}
        self.lookups: List[str] = []

    async def lookup_by_address(self, address: str) -> Optional[RecipientIdentity]:
        self.lookups.append(address)
        identity = self.identities.get(address)
        if identity is not None:
            return identity
        for key, value in self.identities.items():
            if key.lower() == address.lower():
                return value
        return None


def transfer(recipient: str, amount: int, index: int = 0) -> TransferEvent:
    return TransferEvent(
        sender_address=SENDER,
        recipient_address=recipient,
        amount=amount,
        event_index=index,
    )
