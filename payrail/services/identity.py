"""Identity store lookups and tiered display-name resolution."""
import logging
from typing import Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from payrail.models.team import TeamMember
from payrail.services.ports import IdentityStore, RecipientIdentity

logger = logging.getLogger(__name__)

TRUNCATE_LENGTH = 8


def truncate_for_display(address: str) -> str:
    """First 8 characters of an address followed by an ellipsis."""
    return f"{address[:TRUNCATE_LENGTH]}..."


class TeamMemberIdentityStore:
    """Identity store backed by the team_members table."""

    def __init__(self, db: AsyncSession, organization_id: Optional[str] = None):
        self.db = db
        self.organization_id = organization_id

    async def lookup_by_address(self, address: str) -> Optional[RecipientIdentity]:
        """Match the Stacks or BTC address, case-sensitive first then case-insensitive."""
        member = await self._first_match(
            or_(TeamMember.wallet_address == address, TeamMember.btc_address == address)
        )
        if member is None:
            folded = address.lower()
            member = await self._first_match(
                or_(
                    func.lower(TeamMember.wallet_address) == folded,
                    func.lower(TeamMember.btc_address) == folded,
                )
            )
        if member is None:
            return None

        return RecipientIdentity(
            address=address,
            display_name=member.name,
            contact_email=member.email or None,
        )

    async def _first_match(self, condition) -> Optional[TeamMember]:
        query = select(TeamMember).where(condition)
        if self.organization_id:
            query = query.where(TeamMember.organization_id == self.organization_id)
        # Duplicates only arise from operator error; the oldest entry wins
        query = query.order_by(TeamMember.created_at.asc(), TeamMember.id.asc()).limit(1)
        # Savepoint: a failed lookup must not abort the caller's transaction
        async with self.db.begin_nested():
            result = await self.db.execute(query)
            return result.scalar_one_or_none()


class IdentityResolver:
    """
    Resolves a leg's display name.

    Tier 1: caller-supplied override name.
    Tier 2: identity store match on the recipient address.
    Tier 3: truncated address.

    Never raises; identity problems must not block settlement reporting.
    """

    def __init__(self, store: IdentityStore):
        self.store = store

    async def lookup(self, address: str) -> Optional[RecipientIdentity]:
        """Identity store lookup that swallows store failures into a miss."""
        try:
            return await self.store.lookup_by_address(address)
        except Exception as e:
            logger.warning(f"Identity lookup failed for {address}: {e}")
            return None

    async def resolve_with_identity(
        self,
        address: str,
        override_name: Optional[str] = None
    ) -> Tuple[str, Optional[RecipientIdentity]]:
        """Resolve the display name and return the identity that was consulted, if any."""
        if override_name:
            return override_name, None

        identity = await self.lookup(address)
        if identity is not None and identity.display_name:
            return identity.display_name, identity

        return truncate_for_display(address), identity

    async def resolve(self, leg, override_name: Optional[str] = None) -> str:
        """Display name for a leg (anything exposing recipient_address)."""
        name, _ = await self.resolve_with_identity(leg.recipient_address, override_name)
        return name
