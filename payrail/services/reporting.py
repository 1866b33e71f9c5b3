"""History rows for disbursement reporting.

USD values are display-only. The STX price is always passed in by the caller
and never read from shared state; settlement amounts stay in micro-STX.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from payrail.models.disbursement import Disbursement, DisbursementKind, DisbursementLeg
from payrail.schemas.disbursement import HistoryRow
from payrail.services.expander import AGGREGATE_DISPLAY_NAME
from payrail.services.identity import truncate_for_display

MICRO_STX_PER_STX = 1_000_000

PAYROLL_TYPE_BATCH = "Batch Payroll"
PAYROLL_TYPE_ONE_TIME = "One-time"

_SUCCESS = {"success", "confirmed", "expanded", "notified"}
_PROCESSING = {"pending", "broadcast", "polling"}
_DECLINED = {"abort_by_response", "abort_by_post_condition"}


def micro_to_stx(amount: int) -> Decimal:
    """Convert micro-STX to STX without float rounding."""
    return Decimal(amount) / MICRO_STX_PER_STX


def format_stx(amount: int) -> str:
    """Render a micro-STX amount with six decimals, e.g. ``187.669000``."""
    return f"{micro_to_stx(amount):,.6f}"


def format_usd(amount: int, stx_price_usd: Optional[Decimal]) -> Optional[str]:
    """USD value of a micro-STX amount at the given price, or None without a price."""
    if stx_price_usd is None:
        return None
    usd = micro_to_stx(amount) * Decimal(str(stx_price_usd))
    return f"{usd.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"


def truncate_address(address: str, start: int = 4, end: int = 4) -> str:
    """Shorten an address for tables: ``ST3S...1M44``."""
    if not address or len(address) <= start + end + 3:
        return address or ""
    return f"{address[:start]}...{address[-end:]}"


def format_tx_status(status: Optional[str]) -> str:
    """Map a raw chain status or a disbursement status to a user-facing label."""
    if not status:
        return "Unknown"
    s = status.lower()
    if s in _SUCCESS:
        return "Success"
    if s in _PROCESSING:
        return "Processing"
    if s == "timed_out":
        return "Verifying"
    if s in _DECLINED:
        return "Declined"
    if "abort" in s or "failed" in s or "dropped" in s:
        return "Failed"
    return status[:1].upper() + status[1:]


def payroll_type(disbursement: Disbursement) -> str:
    if disbursement.kind == DisbursementKind.BATCH:
        return PAYROLL_TYPE_BATCH
    return PAYROLL_TYPE_ONE_TIME


def build_history_rows(
    disbursement: Disbursement,
    legs: Iterable[DisbursementLeg],
    stx_price_usd: Optional[Decimal] = None,
    explorer_link: Optional[str] = None,
) -> List[HistoryRow]:
    """
    One row per leg, in leg order.

    A batch shows its individual payments rather than the aggregate contract
    call. The display name falls back from the resolved name to the override
    name to the truncated address.
    """
    status = format_tx_status(disbursement.status.value)
    rows = []
    for leg in sorted(legs, key=lambda item: item.position):
        if leg.is_degraded:
            name = leg.override_name or AGGREGATE_DISPLAY_NAME
        else:
            name = (
                leg.recipient_display_name
                or leg.override_name
                or truncate_for_display(leg.recipient_address)
            )
        rows.append(
            HistoryRow(
                leg_id=leg.leg_id,
                transaction_id=disbursement.transaction_id,
                recipient_name=name,
                recipient_address=leg.recipient_address,
                recipient_address_short=truncate_address(leg.recipient_address),
                amount=leg.amount,
                amount_stx=format_stx(leg.amount),
                amount_usd=format_usd(leg.amount, stx_price_usd),
                status=status,
                payroll_type=payroll_type(disbursement),
                period_reference=disbursement.period_reference,
                explorer_link=explorer_link,
                notification_state=leg.notification_state,
                created_at=leg.created_at,
            )
        )
    return rows
