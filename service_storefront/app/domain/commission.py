"""
Two-level affiliate commission rules.

An order referred by an affiliate earns the affiliate a level 1 share; if
that affiliate was itself recruited by a parent affiliate, the parent earns
a level 2 share. Shares start ``pending``, become ``available`` on delivery
and are voided when the order is canceled, refunded or returned.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import CommissionStatus, OrderStatus
from .settings import (
    COMMISSION_LEVEL1_KEY,
    COMMISSION_LEVEL2_KEY,
    DEFAULT_COMMISSION_LEVEL1,
    DEFAULT_COMMISSION_LEVEL2,
    parse_int_setting,
)


@dataclass(frozen=True)
class CommissionSettings:
    level1_percentage: int = DEFAULT_COMMISSION_LEVEL1
    level2_percentage: int = DEFAULT_COMMISSION_LEVEL2

    @classmethod
    def from_values(cls, values: Mapping[str, str]) -> "CommissionSettings":
        return cls(
            level1_percentage=parse_int_setting(values.get(COMMISSION_LEVEL1_KEY), DEFAULT_COMMISSION_LEVEL1),
            level2_percentage=parse_int_setting(values.get(COMMISSION_LEVEL2_KEY), DEFAULT_COMMISSION_LEVEL2),
        )


@dataclass(frozen=True)
class CommissionShare:
    affiliate_id: str
    level: int
    percentage: int
    amount: int


@dataclass(frozen=True)
class CommissionUpdate:
    """Status move applied to an order's commissions.

    ``only_from`` restricts the move to commissions currently in that state.
    """
    target: CommissionStatus
    only_from: Optional[CommissionStatus] = None


def share_amount(total_amount: int, percentage: int) -> int:
    # Whole currency units, rounded down
    return (total_amount * percentage) // 100


def plan_commissions(
    total_amount: int,
    settings: CommissionSettings,
    affiliate_id: str,
    parent_affiliate_id: Optional[str] = None,
) -> List[CommissionShare]:
    shares = [
        CommissionShare(
            affiliate_id=affiliate_id,
            level=1,
            percentage=settings.level1_percentage,
            amount=share_amount(total_amount, settings.level1_percentage),
        )
    ]
    if parent_affiliate_id:
        shares.append(
            CommissionShare(
                affiliate_id=parent_affiliate_id,
                level=2,
                percentage=settings.level2_percentage,
                amount=share_amount(total_amount, settings.level2_percentage),
            )
        )
    return shares


def update_for_order_status(new_status: OrderStatus) -> Optional[CommissionUpdate]:
    if new_status == OrderStatus.DELIVERED:
        return CommissionUpdate(CommissionStatus.AVAILABLE, only_from=CommissionStatus.PENDING)
    if new_status in (OrderStatus.CANCELED, OrderStatus.REFUNDED, OrderStatus.RETURNED):
        return CommissionUpdate(CommissionStatus.VOID)
    return None


def summarize(commissions: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """Totals by status and by level for the affiliate dashboard."""
    totals = {
        "availableCommissions": 0,
        "pendingCommissions": 0,
        "paidCommissions": 0,
        "level1Commissions": 0,
        "level2Commissions": 0,
    }
    by_status = {
        CommissionStatus.AVAILABLE.value: "availableCommissions",
        CommissionStatus.PENDING.value: "pendingCommissions",
        CommissionStatus.PAID.value: "paidCommissions",
    }
    for commission in commissions:
        amount = int(commission.get("amount") or 0)
        status = commission.get("status")
        status_key = by_status.get(getattr(status, "value", status))
        if status_key:
            totals[status_key] += amount
        level = commission.get("level")
        if level == 1:
            totals["level1Commissions"] += amount
        elif level == 2:
            totals["level2Commissions"] += amount
    return totals
