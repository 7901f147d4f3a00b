"""Refund notification template: sent when a custom order is refunded."""

from notifications.message import NotificationType, RecipientType

REASON_LABELS = {
    "technically_impossible": "The requested bot is not technically feasible",
    "client_request": "Refunded at your request",
    "budget_insufficient": "The budget does not cover the requested work",
    "timeline_unfeasible": "The requested timeline cannot be met",
    "policy_violation": "The request conflicts with our policies",
    "duplicate_order": "This order duplicates another order",
    "other": "Other",
}


class RefundNotificationTemplate:
    notification_type = NotificationType.REFUND_NOTIFICATION.value
    recipient_type = RecipientType.CUSTOMER.value

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number", "N/A")
        budget = float(context.get("budget_amount") or 0)
        reason = context.get("refund_reason")
        body = (
            f"A refund of ${budget:.2f} has been processed for order #{tracking_number}.\n\n"
            f"Reason: {REASON_LABELS.get(reason, reason or 'as requested')}\n"
        )
        message = context.get("custom_refund_message")
        if message:
            body += f"\nAdditional Information:\n{message}\n"
        body += (
            "\nWe apologize that we couldn't fulfill your custom bot requirements. "
            "Please contact support if you have any questions about this refund."
        )
        return {"subject": f"Refund Processed - Order #{tracking_number}", "body": body}
