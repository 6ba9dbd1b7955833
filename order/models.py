import uuid
from django.conf import settings
from django.db import models

from catalog.models import Category, Product


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"
        CANCELLED = "cancelled"
        REFUNDED = "refunded"

    class FulfillmentStatus(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        PARTIALLY_SHIPPED = "partially_shipped"
        SHIPPED = "shipped"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=64, unique=True)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    # Derived from the sub-orders, advisory only
    fulfillment_status = models.CharField(
        max_length=20,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.PENDING,
    )

    # Minor currency units
    subtotal = models.PositiveBigIntegerField(default=0)
    total_amount = models.PositiveBigIntegerField(default=0)
    currency = models.CharField(max_length=10, default="USD")

    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True, null=True)

    needs_reconciliation = models.BooleanField(default=False)
    reconciliation_notes = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="order_status_idx"),
            models.Index(fields=["needs_reconciliation"], name="order_reconciliation_idx"),
        ]

    def __str__(self):
        return self.order_number


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True)
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="sold_items")
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True)

    # Snapshot fields
    product_id_snapshot = models.CharField(max_length=64)
    product_name = models.CharField(max_length=255, blank=True)
    unit_price = models.PositiveBigIntegerField()
    quantity = models.PositiveIntegerField()
    total = models.PositiveBigIntegerField()

    def __str__(self):
        return f"{self.product_name or self.product_id_snapshot} x{self.quantity}"


class SubOrder(models.Model):
    """One seller's share of a paid order."""

    class FulfillmentStatus(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        SHIPPED = "shipped"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"

    # Mirrors the status of the sub-order's earning
    class PayoutStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        AVAILABLE = "AVAILABLE", "Available"
        PROCESSING = "PROCESSING", "Processing"
        PAID = "PAID", "Paid"

    class CommissionSource(models.TextChoices):
        SELLER = "seller", "Seller rate"
        CATEGORY = "category", "Category override"
        TIER = "tier", "Seller tier"
        DEFAULT = "default", "Default rate"
        FALLBACK = "fallback", "Fallback rate"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    parent_order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="sub_orders")
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="sub_orders")

    items = models.JSONField(default=list, blank=True)

    subtotal = models.PositiveBigIntegerField()
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    commission_source = models.CharField(max_length=20, choices=CommissionSource.choices)
    commission_amount = models.PositiveBigIntegerField()
    processing_fee = models.PositiveBigIntegerField(default=0)
    platform_fee = models.PositiveBigIntegerField(default=0)
    seller_payout = models.PositiveBigIntegerField()

    fulfillment_status = models.CharField(
        max_length=20,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.PENDING,
    )
    payout_status = models.CharField(
        max_length=20,
        choices=PayoutStatus.choices,
        default=PayoutStatus.PENDING,
    )

    tracking_number = models.CharField(max_length=100, blank=True)
    carrier = models.CharField(max_length=100, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["parent_order", "seller"], name="unique_sub_order_per_seller"),
        ]
        indexes = [
            models.Index(fields=["seller", "fulfillment_status"], name="suborder_seller_status_idx"),
            models.Index(fields=["payout_status"], name="suborder_payout_status_idx"),
            models.Index(fields=["seller", "created_at"], name="suborder_seller_created_idx"),
        ]

    def __str__(self):
        return f"{self.parent_order_id} / {self.seller_id}"
