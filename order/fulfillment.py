import logging
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from notifications.services import NotificationService, NotificationTemplates
from payment.services.errors import InvalidFulfillmentTransition, ValidationError
from .models import Order, SubOrder

logger = logging.getLogger(__name__)

Status = SubOrder.FulfillmentStatus

ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}

_TIMESTAMP_FIELDS = {
    "shipped": "shipped_at",
    "delivered": "delivered_at",
    "cancelled": "cancelled_at",
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def compute_rollup(statuses: Iterable[str]) -> str:
    """Derive the parent order's fulfillment status from its sub-orders."""
    statuses = list(statuses)
    if not statuses:
        return Order.FulfillmentStatus.PENDING
    if all(s == Status.CANCELLED for s in statuses):
        return Order.FulfillmentStatus.CANCELLED

    if all(s == Status.DELIVERED for s in statuses):
        return Order.FulfillmentStatus.DELIVERED
    if all(s in (Status.SHIPPED, Status.DELIVERED) for s in statuses):
        return Order.FulfillmentStatus.SHIPPED
    if any(s in (Status.SHIPPED, Status.DELIVERED) for s in statuses):
        return Order.FulfillmentStatus.PARTIALLY_SHIPPED
    active = [s for s in statuses if s != Status.CANCELLED]
    if all(s == Status.CONFIRMED for s in active):
        return Order.FulfillmentStatus.CONFIRMED
    return Order.FulfillmentStatus.PENDING


@transaction.atomic
def update_fulfillment_status(
    sub_order_id,
    new_status: str,
    *,
    tracking_number: Optional[str] = None,
    carrier: Optional[str] = None,
) -> SubOrder:
    new_status = str(new_status)
    if new_status not in Status.values:
        raise ValidationError(f"Unknown fulfillment status '{new_status}'")

    sources = [current for current, targets in ALLOWED_TRANSITIONS.items() if new_status in targets]
    now = timezone.now()
    updates = {"fulfillment_status": new_status, "updated_at": now}
    if new_status in _TIMESTAMP_FIELDS:
        updates[_TIMESTAMP_FIELDS[new_status]] = now
    if tracking_number is not None:
        updates["tracking_number"] = tracking_number
    if carrier is not None:
        updates["carrier"] = carrier

    rows = SubOrder.objects.filter(pk=sub_order_id, fulfillment_status__in=sources).update(**updates)
    if rows == 0:
        current = SubOrder.objects.filter(pk=sub_order_id).values_list("fulfillment_status", flat=True).first()
        if current is None:
            raise SubOrder.DoesNotExist(f"Sub-order {sub_order_id} not found")
        raise InvalidFulfillmentTransition(sub_order_id, current, new_status)

    sub_order = SubOrder.objects.select_related("parent_order").get(pk=sub_order_id)
    logger.info("Sub-order %s moved to %s", sub_order.id, new_status)
    recompute_order_rollup(sub_order.parent_order_id)
    return sub_order


def recompute_order_rollup(order_id) -> str:
    statuses = SubOrder.objects.filter(parent_order_id=order_id).values_list("fulfillment_status", flat=True)
    rollup = compute_rollup(statuses)
    rows = (
        Order.objects.filter(pk=order_id)
        .exclude(fulfillment_status=rollup)
        .update(fulfillment_status=rollup, updated_at=timezone.now())
    )
    if rows and rollup in (Order.FulfillmentStatus.SHIPPED, Order.FulfillmentStatus.DELIVERED):
        order = Order.objects.select_related("user").get(pk=order_id)
        template = (
            NotificationTemplates.order_shipped(order)
            if rollup == Order.FulfillmentStatus.SHIPPED
            else NotificationTemplates.order_delivered(order)
        )
        NotificationService.send(order.user, template)
    return rollup
