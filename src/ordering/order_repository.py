"""Repository for direct purchase orders.

Orders are created at checkout and afterwards changed only by payment
evidence (``apply_payment``) or by an operator override (``update_status``).
They are never deleted. Every successful write is published on the fan-out
channel.
"""

from collections.abc import Callable

import structlog

from catalog.service import CatalogService
from notifications.dispatch import NotificationDispatcher
from notifications.message import NotificationType
from ordering.codes import allocate_code, generate_ref_code
from ordering.payment_state import PaymentState, TransitionResult, can_transition
from ordering.purchase import (
    INITIAL_STATUS,
    Order,
    OrderStatus,
    PaymentMethod,
    is_status_allowed,
    rail_status,
)
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

TABLE = "orders"
SEARCH_COLUMNS = ("ref_code", "item", "email")


class OrderRepository:
    def __init__(
        self,
        store: BackingStore,
        catalog: CatalogService,
        fanout: FanOutChannel,
        notifier: NotificationDispatcher,
        admin_email: str | None = None,
        clock: Clock = system_clock,
        code_attempts: int = 5,
        race_attempts: int = 3,
        ref_code_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.fanout = fanout
        self.notifier = notifier
        self.admin_email = admin_email
        self.clock = clock
        self.code_attempts = code_attempts
        self.race_attempts = race_attempts
        self.ref_code_factory = ref_code_factory or (lambda: generate_ref_code(self.clock))

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------
    def _publish(self, order: Order, field: str = "status") -> None:
        new_state = order.status.value if field == "status" else str(getattr(order, field))
        self.fanout.publish(
            OrderEvent(
                entity_type="order",
                ref_code=order.ref_code,
                new_state=new_state,
                field=field,
                snapshot=order.to_event_snapshot(),
            )
        )

    def _notify_admin(self, order: Order, event: str) -> None:
        self.notifier.send(
            NotificationType.ADMIN_ORDER_NOTIFICATION.value,
            self.admin_email,
            {**order.model_dump(mode="json"), "event": event},
        )

    def _ref_code_taken(self, code: str) -> bool:
        return self.store.exists(TABLE, ref_code=code)

    def _parse_method(self, payment_method: str, errors: dict[str, list[str]]) -> PaymentMethod | None:
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            errors["payment_method"] = [f"must be one of: {', '.join(m.value for m in PaymentMethod)}"]
            return None

    def _row(self, item: str, ref_code: str, amount: float, method: PaymentMethod, email: str | None, now) -> dict:
        return {
            "item": item,
            "ref_code": ref_code,
            "amount": float(amount),
            "status": INITIAL_STATUS[method].value,
            "payment_method": method.value,
            "downloaded": False,
            "email": email.strip().lower() if email else None,
            "created_at": now,
            "updated_at": now,
        }

    def _insert_under_new_ref_code(self, build_rows: Callable[[str], list[dict]]) -> list[dict]:
        for attempt in range(1, self.code_attempts + 1):
            ref_code = allocate_code(self.ref_code_factory, self._ref_code_taken, self.code_attempts)
            try:
                return self.store.insert_many(TABLE, build_rows(ref_code))
            except DuplicateKeyError:
                # Lost the race between the existence check and the insert
                logger.warning("Ref code taken at insert, retrying", attempt=attempt)
        raise ConflictError(f"Could not allocate a unique ref code after {self.code_attempts} attempts")

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------
    def create(self, item: str, amount: float, payment_method: str, email: str | None = None) -> Order:
        errors: dict[str, list[str]] = {}
        if amount is None or amount <= 0:
            errors["amount"] = ["must be greater than 0"]
        method = self._parse_method(payment_method, errors)
        try:
            self.catalog.require_purchasable(item)
        except ValidationError as exc:
            errors.update(exc.messages)
        if errors:
            raise ValidationError(errors)

        now = utc_now(self.clock)
        (stored,) = self._insert_under_new_ref_code(lambda code: [self._row(item, code, amount, method, email, now)])

        order = Order.model_validate(stored)
        logger.info("Order created", ref_code=order.ref_code, item=item, payment_method=method.value)
        self._publish(order)
        self._notify_admin(order, event="created")
        return order

    def create_bulk(self, items: list[str], payment_method: str, email: str | None = None) -> list[Order]:
        """Cart checkout: one order row per item, all sharing one ref code.

        Each row is priced from the catalog. Either every row is stored or
        none is. Payment evidence for the shared ref code must name the item.
        """
        errors: dict[str, list[str]] = {}
        items = [item.strip() for item in items or [] if item and item.strip()]
        if not items:
            errors["items"] = ["must name at least one item"]
        repeated = sorted({item for item in items if items.count(item) > 1})
        if repeated:
            errors.setdefault("items", []).append(f"listed more than once: {', '.join(repeated)}")
        method = self._parse_method(payment_method, errors)

        prices: dict[str, float] = {}
        for item in dict.fromkeys(items):
            try:
                prices[item] = self.catalog.require_purchasable(item).price
            except ValidationError as exc:
                errors.setdefault("items", []).extend(f"{item}: {message}" for message in exc.messages["item"])
        if errors:
            raise ValidationError(errors)

        now = utc_now(self.clock)
        stored = self._insert_under_new_ref_code(
            lambda code: [self._row(item, code, price, method, email, now) for item, price in prices.items()]
        )

        orders = [Order.model_validate(row) for row in stored]
        ref_code = orders[0].ref_code
        total = sum(order.amount for order in orders)
        logger.info(
            "Bulk order created",
            ref_code=ref_code,
            items=len(orders),
            total=total,
            payment_method=method.value,
        )
        for order in orders:
            self._publish(order)
        self.notifier.send(
            NotificationType.ADMIN_ORDER_NOTIFICATION.value,
            self.admin_email,
            {
                **orders[0].model_dump(mode="json"),
                "items": [order.item for order in orders],
                "amount": total,
                "event": "created",
            },
        )
        return orders

    def update_status(self, ref_code: str, item: str, new_status: str) -> Order:
        """Operator override. Unconditional, but only to a known status."""
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(
                {"status": [f"must be one of: {', '.join(s.value for s in OrderStatus)}"]}
            ) from None

        order = self.get(ref_code, item)
        if not is_status_allowed(order.payment_method, status):
            raise ValidationError({"status": [f"not valid for {order.payment_method.value} orders"]})

        updated = self.store.update(
            TABLE,
            {"ref_code": ref_code, "item": item},
            {"status": status.value, "updated_at": utc_now(self.clock)},
        )
        if updated == 0:
            raise NotFoundError(f"Order {ref_code}/{item} not found", ref_code=ref_code, item=item)

        order = self.get(ref_code, item)
        logger.info("Order status overridden", ref_code=ref_code, item=item, status=status.value)
        self._publish(order)
        return order

    def mark_downloaded(self, ref_code: str, item: str) -> TransitionResult:
        order = self.get(ref_code, item)
        if order.downloaded:
            return TransitionResult(order, "downloaded", "downloaded", changed=False)
        if not order.download_eligible:
            raise InvalidTransitionError(
                "Payment not confirmed for this order",
                current=order.status.value,
                target="downloaded",
            )

        stored = self.store.conditional_update(
            TABLE,
            key={"id": order.id},
            expected={"downloaded": False},
            values={"downloaded": True, "updated_at": utc_now(self.clock)},
        )
        if stored is None:
            # Someone else marked it first
            return TransitionResult(self.get(ref_code, item), "downloaded", "downloaded", changed=False)

        order = Order.model_validate(stored)
        logger.info("Order downloaded", ref_code=ref_code, item=item)
        self._publish(order, field="downloaded")
        return TransitionResult(order, "not_downloaded", "downloaded", changed=True)

    def apply_payment(
        self,
        ref_code: str,
        target: PaymentState,
        item: str | None = None,
        variant: OrderStatus | None = None,
        receipt_ref: str | None = None,
    ) -> TransitionResult:
        """Move an order to ``target`` using an atomic conditional update.

        ``variant`` picks the rail-specific status to write; by default the
        rail's standard variant for ``target`` is used.
        """
        for _ in range(self.race_attempts):
            order = self.find_by_ref_code(ref_code, item)
            current = order.payment_state
            target_status = variant or rail_status(order.payment_method, target)

            same_state = current == target and (target != PaymentState.PENDING or variant is None)
            if order.status == target_status or same_state:
                logger.info("Payment replay ignored", ref_code=ref_code, state=order.status.value)
                return TransitionResult(order, order.status.value, order.status.value, changed=False)

            pending_detail = current == PaymentState.PENDING and target == PaymentState.PENDING
            if not pending_detail and not can_transition(current, target):
                raise InvalidTransitionError(
                    f"Cannot move order from {order.status.value} to {target_status.value}",
                    current=order.status.value,
                    target=target_status.value,
                )

            values = {"status": target_status.value, "updated_at": utc_now(self.clock)}
            if receipt_ref:
                values["receipt_ref"] = receipt_ref
            stored = self.store.conditional_update(
                TABLE,
                key={"id": order.id},
                expected={"status": order.status.value},
                values=values,
            )
            if stored is None:
                logger.info("Lost status race, re-reading", ref_code=ref_code)
                continue

            updated = Order.model_validate(stored)
            logger.info(
                "Order payment state changed",
                ref_code=ref_code,
                previous=order.status.value,
                current=updated.status.value,
            )
            self._publish(updated)
            if target == PaymentState.PAID:
                self._notify_admin(updated, event="payment_confirmed")
            return TransitionResult(updated, order.status.value, updated.status.value, changed=True)

        raise ConflictError(f"Order {ref_code} kept changing underneath the update", ref_code=ref_code)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------
    def get(self, ref_code: str, item: str) -> Order:
        row = self.store.get(TABLE, ref_code=ref_code, item=item)
        if row is None:
            raise NotFoundError(f"Order {ref_code}/{item} not found", ref_code=ref_code, item=item)
        return Order.model_validate(row)

    def find_by_ref_code(self, ref_code: str, item: str | None = None) -> Order:
        if item is not None:
            return self.get(ref_code, item)
        rows = self.store.find(TABLE, ref_code=ref_code, limit=2)
        if not rows:
            raise NotFoundError(f"Order {ref_code} not found", ref_code=ref_code)
        if len(rows) > 1:
            raise ValidationError({"item": ["is required, this ref code covers several items"]})
        return Order.model_validate(rows[0])

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Order], int]:
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
        return [Order.model_validate(row) for row in rows], total

    def lookup(self, ref_code: str, item: str) -> dict:
        """Customer-facing status view used by the download page."""
        order = self.get(ref_code, item)
        return {
            "ref_code": order.ref_code,
            "item": order.item,
            "status": order.status.value,
            "bucket": order.bucket.value,
            "payment_state": order.payment_state.value,
            "downloaded": order.downloaded,
            "download_eligible": order.download_eligible,
            "message": order.status_message(),
        }
