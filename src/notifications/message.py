"""Notification vocabulary shared by the dispatcher, the worker and templates."""

from dataclasses import dataclass, field
from enum import Enum


class NotificationType(Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    ADMIN_NEW_ORDER = "admin_new_order"
    PAYMENT_CONFIRMATION = "payment_confirmation"
    ADMIN_PAYMENT = "admin_payment"
    BOT_DELIVERY = "bot_delivery"
    REFUND_NOTIFICATION = "refund_notification"
    ADMIN_ORDER_NOTIFICATION = "admin_order_notification"


class RecipientType(Enum):
    CUSTOMER = "customer"
    INTERNAL = "internal"


@dataclass(frozen=True)
class NotificationRequested:
    """Emitted by a transition handler; consumed by the notification worker."""

    template: str
    recipient: str
    payload: dict = field(default_factory=dict)
    requested_at: float = 0.0
