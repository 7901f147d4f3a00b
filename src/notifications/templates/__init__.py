"""Template registry: maps NotificationType to template classes.

Each template knows who it addresses and how to render its subject and body
from the payload attached to the notification request.
"""

from notifications.message import NotificationType
from notifications.templates.admin import (
    AdminNewOrderTemplate,
    AdminOrderNotificationTemplate,
    AdminPaymentTemplate,
)
from notifications.templates.bot_delivery import BotDeliveryTemplate
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.payment_confirmation import PaymentConfirmationTemplate
from notifications.templates.refund_notification import RefundNotificationTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationType.ORDER_CONFIRMATION.value: OrderConfirmationTemplate,
    NotificationType.ADMIN_NEW_ORDER.value: AdminNewOrderTemplate,
    NotificationType.PAYMENT_CONFIRMATION.value: PaymentConfirmationTemplate,
    NotificationType.ADMIN_PAYMENT.value: AdminPaymentTemplate,
    NotificationType.BOT_DELIVERY.value: BotDeliveryTemplate,
    NotificationType.REFUND_NOTIFICATION.value: RefundNotificationTemplate,
    NotificationType.ADMIN_ORDER_NOTIFICATION.value: AdminOrderNotificationTemplate,
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls
