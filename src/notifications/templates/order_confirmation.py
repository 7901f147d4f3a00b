"""Order confirmation template: sent to the client when a custom order is created."""

from notifications.message import NotificationType, RecipientType


def _method_label(method: str | None) -> str:
    return "M-Pesa" if method == "mpesa" else "Cryptocurrency"


class OrderConfirmationTemplate:
    notification_type = NotificationType.ORDER_CONFIRMATION.value
    recipient_type = RecipientType.CUSTOMER.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        budget = float(context.get("budget_amount") or 0)
        return {
            "subject": f"Order Confirmed - Tracking #{tracking_number}",
            "body": (
                "Thank you for your custom bot order.\n\n"
                f"Tracking Number: {tracking_number}\n"
                f"Budget: ${budget:.2f}\n"
                f"Payment Method: {_method_label(context.get('payment_method'))}\n\n"
                f"Bot Description:\n{context.get('bot_description', '')}\n\n"
                f"Features:\n{context.get('bot_features', '')}\n\n"
                "You can track your order status with the tracking number above."
            ),
        }
