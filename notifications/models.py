import uuid
from django.conf import settings
from django.db import models


class Notification(models.Model):
    class Type(models.TextChoices):
        NEW_SUB_ORDER = "new_sub_order", "New Sub-Order"
        EARNINGS_AVAILABLE = "earnings_available", "Earnings Available"
        PAYOUT_APPROVED = "payout_approved", "Payout Approved"
        PAYOUT_REJECTED = "payout_rejected", "Payout Rejected"
        ORDER_SHIPPED = "order_shipped", "Order Shipped"
        ORDER_DELIVERED = "order_delivered", "Order Delivered"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    type = models.CharField(max_length=50, choices=Type.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()
    payload = models.JSONField(default=dict)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read"], name="notification_user_read_idx"),
            models.Index(fields=["type"], name="notification_type_idx"),
            models.Index(fields=["created_at"], name="notification_created_idx"),
        ]
