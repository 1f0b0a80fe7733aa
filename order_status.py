from typing import Dict, List, Optional

from formatting import format_status

PROGRESSION = ["placed", "confirmed", "shipped", "delivered"]
TERMINAL = {"delivered", "cancelled"}

LABELS = {
    "placed": "Order Placed",
    "confirmed": "Order Confirmed",
    "shipped": "Out for Delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}

STEP_LABELS = {
    "placed": "Order Placed",
    "confirmed": "Confirmed",
    "shipped": "Shipped",
    "delivered": "Delivered",
}

STATUS_TOASTS = {
    "confirmed": ("✅", "Your order has been confirmed and is being processed!"),
    "shipped": ("🚚", "Your order has been shipped and is on the way!"),
    "delivered": ("🎉", "Your order has been delivered! Enjoy your purchase!"),
    "cancelled": ("❌", "Your order has been cancelled."),
    "placed": ("📦", "Your order has been placed successfully!"),
}


def status_index(status: str) -> int:
    """Position in the progression, -1 for cancelled or unknown statuses."""
    try:
        return PROGRESSION.index(status)
    except ValueError:
        return -1


def is_status_completed(current: str, check: str) -> bool:
    return status_index(current) >= status_index(check)


def next_status(current: str) -> Optional[str]:
    if current in TERMINAL:
        return None
    i = status_index(current)
    if i < 0:
        return None
    return PROGRESSION[i + 1]


def can_cancel(status: str) -> bool:
    return status in ("placed", "confirmed")


def label(status: str) -> str:
    return LABELS.get(status) or format_status(status)


def progress_steps(status: str) -> List[Dict]:
    return [
        {
            "key": key,
            "label": STEP_LABELS[key],
            "done": is_status_completed(status, key),
            "current": status == key,
        }
        for key in PROGRESSION
    ]


def toast_message(status: str) -> str:
    emoji, text = STATUS_TOASTS.get(status, ("📢", f"Order status updated to {status}"))
    return f"{emoji} {text}"
