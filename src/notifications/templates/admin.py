"""Internal notices sent to the store operator."""

from notifications.message import NotificationType, RecipientType


class AdminNewOrderTemplate:
    notification_type = NotificationType.ADMIN_NEW_ORDER.value
    recipient_type = RecipientType.INTERNAL.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        budget = float(context.get("budget_amount") or 0)
        return {
            "subject": f"New Custom Bot Order - {tracking_number}",
            "body": (
                "A new custom bot order is pending payment confirmation.\n\n"
                f"Tracking Number: {tracking_number}\n"
                f"Ref Code: {context.get('ref_code', 'N/A')}\n"
                f"Customer Email: {context.get('client_email', 'N/A')}\n"
                f"Budget: ${budget:.2f}\n"
                f"Payment Method: {context.get('payment_method', 'N/A')}"
            ),
        }


class AdminPaymentTemplate:
    notification_type = NotificationType.ADMIN_PAYMENT.value
    recipient_type = RecipientType.INTERNAL.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        budget = float(context.get("budget_amount") or 0)
        evidence = context.get("mpesa_receipt_number") or context.get("payment_id") or "N/A"
        return {
            "subject": f"Payment Confirmed - Start Development {tracking_number}",
            "body": (
                f"Payment of ${budget:.2f} recorded for order {tracking_number}.\n\n"
                f"Ref Code: {context.get('ref_code', 'N/A')}\n"
                f"Customer Email: {context.get('client_email', 'N/A')}\n"
                f"Payment Evidence: {evidence}"
            ),
        }


class AdminOrderNotificationTemplate:
    """Direct purchase notice, sent at checkout and again once payment is confirmed."""

    notification_type = NotificationType.ADMIN_ORDER_NOTIFICATION.value
    recipient_type = RecipientType.INTERNAL.value

    @staticmethod
    def render(context: dict) -> dict:
        amount = float(context.get("amount") or 0)
        items = context.get("items") or [context.get("item", "N/A")]
        confirmed = context.get("event") == "payment_confirmed"
        headline = "Payment Confirmed" if confirmed else "New Order"
        body = (
            f"Item: {', '.join(items)}\n"
            f"Ref Code: {context.get('ref_code', 'N/A')}\n"
            f"Amount: ${amount:.2f}\n"
            f"Payment Method: {context.get('payment_method', 'N/A')}\n"
            f"Customer Email: {context.get('email') or 'N/A'}"
        )
        if confirmed:
            body += f"\nStatus: {context.get('status', 'N/A')}\nReceipt: {context.get('receipt_ref') or 'N/A'}"
        return {"subject": f"{headline} - {', '.join(items)} - ${amount:.2f}", "body": body}
