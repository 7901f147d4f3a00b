"""Payment confirmation template: sent to the client once payment is recorded."""

from notifications.message import NotificationType, RecipientType


class PaymentConfirmationTemplate:
    notification_type = NotificationType.PAYMENT_CONFIRMATION.value
    recipient_type = RecipientType.CUSTOMER.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        budget = float(context.get("budget_amount") or 0)
        return {
            "subject": f"Payment Confirmed - Development Started #{tracking_number}",
            "body": (
                f"We have received your payment of ${budget:.2f}.\n\n"
                f"Development of your custom bot (#{tracking_number}) has started. "
                "We will email you as soon as it is ready for download."
            ),
        }
