"""Repository for custom bot orders.

This repository is the only writer of ``payment_status`` and ``status``.
Every transition is a conditional update guarded by the state it was
decided from; losing a race means re-reading and deciding again, a bounded
number of times. Asking for the state an order already holds returns an
"already <state>" result and repeats no side effects.
"""

from collections.abc import Callable

import structlog

from notifications.dispatch import NotificationDispatcher
from notifications.message import NotificationType
from ordering.codes import allocate_code, generate_ref_code, generate_tracking_number
from ordering.custom import (
    CustomBotOrder,
    CustomOrderRequest,
    CustomOrderStatus,
    validate_refund,
    validate_request,
)
from ordering.payment_state import PaymentState, TransitionResult, can_transition
from realtime.fanout import FanOutChannel, OrderEvent
from shared.clock import Clock, system_clock, utc_now
from shared.errors import (
    ConflictError,
    DuplicateKeyError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from store.port import BackingStore

logger = structlog.get_logger(__name__)

TABLE = "custom_bot_orders"
SEARCH_COLUMNS = ("client_email", "tracking_number", "ref_code")


class CustomOrderRepository:
    def __init__(
        self,
        store: BackingStore,
        fanout: FanOutChannel,
        notifier: NotificationDispatcher,
        admin_email: str | None = None,
        clock: Clock = system_clock,
        code_attempts: int = 5,
        race_attempts: int = 3,
        ref_code_factory: Callable[[], str] | None = None,
        tracking_number_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.fanout = fanout
        self.notifier = notifier
        self.admin_email = admin_email
        self.clock = clock
        self.code_attempts = code_attempts
        self.race_attempts = race_attempts
        self.ref_code_factory = ref_code_factory or (lambda: generate_ref_code(self.clock))
        self.tracking_number_factory = tracking_number_factory or (lambda: generate_tracking_number(self.clock))

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------
    def _publish(self, order: CustomBotOrder, field: str) -> None:
        self.fanout.publish(
            OrderEvent(
                entity_type="custom_order",
                ref_code=order.ref_code,
                new_state=getattr(order, field).value,
                field=field,
                snapshot=order.model_dump(mode="json"),
            )
        )

    def _notify(self, template: NotificationType, recipient: str | None, order: CustomBotOrder) -> None:
        self.notifier.send(template.value, recipient, order.notification_payload())

    def _allocate_codes(self) -> tuple[str, str]:
        ref_code = allocate_code(
            self.ref_code_factory,
            lambda code: self.store.exists(TABLE, ref_code=code),
            self.code_attempts,
            kind="ref_code",
        )
        tracking_number = allocate_code(
            self.tracking_number_factory,
            lambda code: self.store.exists(TABLE, tracking_number=code),
            self.code_attempts,
            kind="tracking_number",
        )
        return ref_code, tracking_number

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------
    def create(self, request: CustomOrderRequest) -> CustomBotOrder:
        values = validate_request(request)
        now = utc_now(self.clock)

        for attempt in range(1, self.code_attempts + 1):
            ref_code, tracking_number = self._allocate_codes()
            row = {
                **values,
                "ref_code": ref_code,
                "tracking_number": tracking_number,
                "status": CustomOrderStatus.PENDING.value,
                "payment_status": PaymentState.PENDING.value,
                "created_at": now,
                "updated_at": now,
            }
            try:
                stored = self.store.insert(TABLE, row)
            except DuplicateKeyError as exc:
                logger.warning("Order code taken at insert, retrying", attempt=attempt, columns=exc.columns)
                continue
            break
        else:
            raise ConflictError(f"Could not allocate unique order codes after {self.code_attempts} attempts")

        order = CustomBotOrder.model_validate(stored)
        logger.info("Custom order created", ref_code=order.ref_code, tracking_number=order.tracking_number)
        self._publish(order, "status")
        self._notify(NotificationType.ORDER_CONFIRMATION, order.client_email, order)
        self._notify(NotificationType.ADMIN_NEW_ORDER, self.admin_email, order)
        return order

    def update_payment_status(
        self,
        ref_code: str,
        new_status: str | PaymentState,
        payment_id: str | None = None,
        mpesa_receipt_number: str | None = None,
    ) -> TransitionResult:
        """Apply a payment-status transition.

        Legal moves are pending->paid, pending->failed and paid->failed. The
        reversal is allowed whatever ``status`` is and never touches it.
        """
        try:
            target = PaymentState(new_status)
        except ValueError:
            raise ValidationError(
                {"payment_status": [f"must be one of: {', '.join(s.value for s in PaymentState)}"]}
            ) from None

        for _ in range(self.race_attempts):
            order = self.get_by_ref_code(ref_code)
            current = order.payment_status

            if current == target:
                logger.info("Payment replay ignored", ref_code=ref_code, payment_status=current.value)
                return TransitionResult(order, current.value, current.value, changed=False)

            if not can_transition(current, target):
                raise InvalidTransitionError(
                    f"Cannot move payment from {current.value} to {target.value}",
                    current=current.value,
                    target=target.value,
                )

            values = {"payment_status": target.value, "updated_at": utc_now(self.clock)}
            if payment_id:
                values["payment_id"] = payment_id
            if mpesa_receipt_number:
                values["mpesa_receipt_number"] = mpesa_receipt_number

            stored = self.store.conditional_update(
                TABLE,
                key={"id": order.id},
                expected={"payment_status": current.value},
                values=values,
            )
            if stored is None:
                logger.info("Lost payment status race, re-reading", ref_code=ref_code)
                continue

            updated = CustomBotOrder.model_validate(stored)
            logger.info(
                "Custom order payment status changed",
                ref_code=ref_code,
                previous=current.value,
                current=target.value,
            )
            self._publish(updated, "payment_status")
            if target == PaymentState.PAID:
                self._notify(NotificationType.PAYMENT_CONFIRMATION, updated.client_email, updated)
                self._notify(NotificationType.ADMIN_PAYMENT, self.admin_email, updated)
            return TransitionResult(updated, current.value, target.value, changed=True)

        raise ConflictError(f"Order {ref_code} kept changing underneath the update", ref_code=ref_code)

    @staticmethod
    def _left_unchanged(order: CustomBotOrder) -> TransitionResult:
        logger.info("Terminal order left unchanged", order_id=order.id, status=order.status.value)
        return TransitionResult(order, order.status.value, order.status.value, changed=False)

    def _finish(self, order_id: int, target: CustomOrderStatus, extra: dict) -> TransitionResult:
        for _ in range(self.race_attempts):
            order = self.get(order_id)

            if order.is_terminal:
                return self._left_unchanged(order)

            if order.payment_status != PaymentState.PAID:
                raise InvalidTransitionError(
                    f"Order must be paid before it can be {target.value} "
                    f"(payment status is {order.payment_status.value})",
                    current=order.payment_status.value,
                    target=target.value,
                )

            now = utc_now(self.clock)
            timestamp_field = "completed_at" if target == CustomOrderStatus.COMPLETED else "refunded_at"
            stored = self.store.conditional_update(
                TABLE,
                key={"id": order_id},
                expected={"status": CustomOrderStatus.PENDING.value, "payment_status": PaymentState.PAID.value},
                values={"status": target.value, timestamp_field: now, "updated_at": now, **extra},
            )
            if stored is None:
                logger.info("Lost status race, re-reading", order_id=order_id)
                continue

            updated = CustomBotOrder.model_validate(stored)
            logger.info("Custom order finished", order_id=order_id, ref_code=updated.ref_code, status=target.value)
            self._publish(updated, "status")
            return TransitionResult(updated, order.status.value, target.value, changed=True)

        raise ConflictError(f"Order {order_id} kept changing underneath the update", order_id=order_id)

    def complete(self, order_id: int) -> TransitionResult:
        result = self._finish(order_id, CustomOrderStatus.COMPLETED, {})
        if result.changed:
            self._notify(NotificationType.BOT_DELIVERY, result.order.client_email, result.order)
        return result

    def refund(self, order_id: int, reason: str, message: str | None = None) -> TransitionResult:
        order = self.get(order_id)
        if order.is_terminal:
            # Terminal orders answer before the reason is validated
            return self._left_unchanged(order)
        refund_reason, message = validate_refund(reason, message)
        result = self._finish(
            order_id,
            CustomOrderStatus.REFUNDED,
            {"refund_reason": refund_reason.value, "custom_refund_message": message},
        )
        if result.changed:
            self._notify(NotificationType.REFUND_NOTIFICATION, result.order.client_email, result.order)
        return result

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------
    def _get_one(self, **criteria) -> CustomBotOrder:
        row = self.store.get(TABLE, **criteria)
        if row is None:
            key, value = next(iter(criteria.items()))
            raise NotFoundError(f"Custom order with {key} {value} not found", **criteria)
        return CustomBotOrder.model_validate(row)

    def get(self, order_id: int) -> CustomBotOrder:
        return self._get_one(id=order_id)

    def get_by_ref_code(self, ref_code: str) -> CustomBotOrder:
        return self._get_one(ref_code=ref_code)

    def get_by_tracking_number(self, tracking_number: str) -> CustomBotOrder:
        return self._get_one(tracking_number=tracking_number)

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[CustomBotOrder], int]:
        criteria = {"status": status} if status and status != "all" else {}
        search_spec = (SEARCH_COLUMNS, search) if search else None
        rows = self.store.find(
            TABLE,
            order_by=[("created_at", True), ("id", True)],
            limit=limit,
            offset=(max(page, 1) - 1) * limit,
            search=search_spec,
            **criteria,
        )
        total = self.store.count(TABLE, search=search_spec, **criteria)
        return [CustomBotOrder.model_validate(row) for row in rows], total

    def payment_status_view(self, ref_code: str) -> dict:
        return self.get_by_ref_code(ref_code).payment_view()
