"""Bot delivery template: sent when a custom order is completed."""

from notifications.message import NotificationType, RecipientType


class BotDeliveryTemplate:
    notification_type = NotificationType.BOT_DELIVERY.value
    recipient_type = RecipientType.CUSTOMER.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        return {
            "subject": f"Bot Ready! Download Your Custom Bot #{tracking_number}",
            "body": (
                f"Your custom bot for order #{tracking_number} is complete.\n\n"
                "Reply to this email or contact support with your tracking number "
                "to receive your files."
            ),
        }
