import logging
from typing import Any, Dict, Optional

from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Records in-app notifications. Delivery (email/push) happens elsewhere."""

    @classmethod
    @transaction.atomic
    def notify(
        cls,
        *,
        user,
        notification_type: str,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        payload = payload or {}
        notification = Notification.objects.create(
            user=user,
            type=notification_type,
            title=title,
            message=message,
            payload=payload,
        )
        logger.info("Notification recorded user=%s type=%s", user.id, notification_type)
        return notification

    @classmethod
    def send(cls, user, template) -> Optional[Notification]:
        """
        Fire-and-forget wrapper: settlement must never fail because a
        notification could not be written.
        """
        title, message, payload = template
        try:
            return cls.notify(
                user=user,
                notification_type=payload["type"],
                title=title,
                message=message,
                payload=payload,
            )
        except Exception:
            logger.exception("Failed to send %s notification to user=%s", payload.get("type"), user.id)
            return None


def _format_amount(amount_minor: int) -> str:
    return f"{amount_minor / 100:.2f}"


class NotificationTemplates:
    @staticmethod
    def new_sub_order(sub_order):
        return (
            "New Order",
            f"You received a new order #{sub_order.parent_order.order_number} "
            f"worth {_format_amount(sub_order.subtotal)}.",
            {
                "type": "new_sub_order",
                "entity_id": str(sub_order.id),
                "entity_type": "sub_order",
                "order_id": str(sub_order.parent_order_id),
            },
        )

    @staticmethod
    def earnings_available(seller, amount, count):
        return (
            "Earnings Available",
            f"{count} earning(s) totalling {_format_amount(amount)} are now available for payout.",
            {
                "type": "earnings_available",
                "entity_id": str(seller.id),
                "entity_type": "seller",
                "amount": amount,
            },
        )

    @staticmethod
    def payout_approved(payout):
        return (
            "Payout Approved",
            f"Your payout request of {_format_amount(payout.amount)} was approved.",
            {
                "type": "payout_approved",
                "entity_id": str(payout.id),
                "entity_type": "payout",
                "payout_id": str(payout.id),
            },
        )

    @staticmethod
    def payout_rejected(payout):
        return (
            "Payout Rejected",
            f"Your payout request of {_format_amount(payout.amount)} was rejected: {payout.failure_reason}",
            {
                "type": "payout_rejected",
                "entity_id": str(payout.id),
                "entity_type": "payout",
                "payout_id": str(payout.id),
            },
        )

    @staticmethod
    def order_shipped(order):
        return (
            "Order Shipped",
            f"Your order #{order.order_number} is on the way.",
            {
                "type": "order_shipped",
                "entity_id": str(order.id),
                "entity_type": "order",
                "order_id": str(order.id),
            },
        )

    @staticmethod
    def order_delivered(order):
        return (
            "Order Delivered",
            f"Your order #{order.order_number} has been delivered.",
            {
                "type": "order_delivered",
                "entity_id": str(order.id),
                "entity_type": "order",
                "order_id": str(order.id),
            },
        )
