"""
Order status transition rules.
"""

from typing import Dict, FrozenSet

from .models import OrderStatus


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED, OrderStatus.REFUNDED}),
    OrderStatus.RETURNED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

ORDER_STATUS_LABELS_FA: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "در انتظار",
    OrderStatus.PROCESSING: "در حال پردازش",
    OrderStatus.SHIPPED: "ارسال شد",
    OrderStatus.DELIVERED: "تحویل شد",
    OrderStatus.CANCELED: "لغو شد",
    OrderStatus.RETURNED: "مرجوع شد",
    OrderStatus.REFUNDED: "بازپرداخت شد",
}

REFUND_LIKE = frozenset({OrderStatus.CANCELED, OrderStatus.REFUNDED, OrderStatus.RETURNED})
STOCK_REDUCED = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def order_status_label(status: OrderStatus) -> str:
    return ORDER_STATUS_LABELS_FA.get(status, status.value)


def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return to_status in ORDER_STATUS_TRANSITIONS.get(from_status, frozenset())


def transition_error_message(from_status: OrderStatus, to_status: OrderStatus) -> str:
    return (
        f"تغییر وضعیت از «{order_status_label(from_status)}» "
        f"به «{order_status_label(to_status)}» مجاز نیست."
    )


def should_restock(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Stock goes back on the shelf when a stock-reduced order is unwound."""
    return to_status in REFUND_LIKE and from_status in STOCK_REDUCED
