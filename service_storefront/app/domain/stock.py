"""
Stock movement reasons.
"""

from typing import Dict

from .models import StockMovementReason


STOCK_REASON_LABELS_FA: Dict[StockMovementReason, str] = {
    StockMovementReason.MANUAL_ADJUST: "تنظیم دستی",
    StockMovementReason.ORDER_RESERVED: "رزرو سفارش",
    StockMovementReason.ORDER_COMMITTED: "ثبت سفارش",
    StockMovementReason.ORDER_RELEASED: "آزادسازی رزرو",
    StockMovementReason.REFUND_RETURN: "مرجوعی / بازپرداخت",
    StockMovementReason.INITIAL_STOCK: "موجودی اولیه",
}

# Order-driven reasons are recorded by the order flow only
MANUAL_REASONS = frozenset({
    StockMovementReason.MANUAL_ADJUST,
    StockMovementReason.INITIAL_STOCK,
    StockMovementReason.REFUND_RETURN,
})


def with_reason_label(movement: dict) -> dict:
    labelled = dict(movement)
    labelled["reasonLabel"] = STOCK_REASON_LABELS_FA[StockMovementReason(movement["reason"])]
    return labelled
